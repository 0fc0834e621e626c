"""Command line entry point: ``s3dav CONFIG``."""

from s3dav.app import create_app_from_config
from s3dav.config import load_config

import argparse
import logging
import uvicorn


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Serve an S3-compatible bucket over WebDAV."
    )
    parser.add_argument("config", help="path to the ZConfig configuration file")
    parser.add_argument("--host", help="override the configured listen address")
    parser.add_argument("--port", type=int, help="override the configured port")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app_from_config(config)
    uvicorn.run(
        app,
        host=args.host or config.host,
        port=args.port or config.port,
        log_level=logging.getLevelName(config.log_level).lower(),
    )


if __name__ == "__main__":
    main()
