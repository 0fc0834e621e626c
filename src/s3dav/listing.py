"""WebDAV multistatus rendering for collection listings.

The object store only knows flat keys; a collection is whatever shares its
prefix.  :func:`immediate_children` folds a recursive prefix listing down to
one level and :func:`render` turns it into the document WebDAV clients
expect from PROPFIND::

    <D:multistatus xmlns:D="DAV:">
      <D:response>            (the collection itself)
      <D:response> ...        (one per child)
    </D:multistatus>
"""

from datetime import datetime
from datetime import timezone
from s3dav.errors import RenderError
from s3dav.models import ObjectSummary
from s3dav.paths import display_name
from s3dav.paths import mounted_url
from urllib.parse import quote

import email.utils
import xml.etree.ElementTree as ET


DAV_NS = "DAV:"
ET.register_namespace("D", DAV_NS)

# Collections are virtual and carry no timestamps of their own.
SYNTHETIC_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)

_OK = "HTTP/1.1 200 OK"


def _tag(name):
    return f"{{{DAV_NS}}}{name}"


def http_date(dt):
    """RFC 1123 date in GMT, e.g. ``Mon, 01 Jan 2024 00:00:00 GMT``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return email.utils.format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def iso_date(dt):
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def immediate_children(prefix, summaries):
    """Reduce a recursive prefix listing to the collection's direct members.

    The collection's own folder marker is dropped and keys nested deeper
    collapse into a single folder entry for their first segment.  The
    result is sorted by key.
    """
    children = {}
    for summary in summaries:
        if not summary.key.startswith(prefix):
            continue
        rest = summary.key[len(prefix):]
        head, sep, tail = rest.partition("/")
        if not head:
            continue
        if sep and tail:
            folder = prefix + head + "/"
            children.setdefault(folder, ObjectSummary(folder, 0, None))
        else:
            children[summary.key] = summary
    return [children[key] for key in sorted(children)]


def _response(parent, href, name, is_collection, modified, size=None):
    response = ET.SubElement(parent, _tag("response"))
    ET.SubElement(response, _tag("href")).text = quote(href, safe="/")
    propstat = ET.SubElement(response, _tag("propstat"))
    prop = ET.SubElement(propstat, _tag("prop"))
    resourcetype = ET.SubElement(prop, _tag("resourcetype"))
    if is_collection:
        ET.SubElement(resourcetype, _tag("collection"))
    ET.SubElement(prop, _tag("displayname")).text = name
    ET.SubElement(prop, _tag("creationdate")).text = iso_date(modified)
    ET.SubElement(prop, _tag("getlastmodified")).text = http_date(modified)
    if size is not None:
        ET.SubElement(prop, _tag("getcontentlength")).text = str(size)
    ET.SubElement(propstat, _tag("status")).text = _OK


def render(collection, children, mount=""):
    """Render the multistatus document for ``collection`` and its children.

    ``children`` are ObjectSummary entries as returned by
    :func:`immediate_children`.  Hrefs are placed below ``mount``, the URL
    prefix the listing is served under.  Returns UTF-8 encoded bytes.
    """
    multistatus = ET.Element(_tag("multistatus"))
    _response(
        multistatus,
        mounted_url(collection, mount),
        display_name(collection) or "root",
        True,
        SYNTHETIC_DATE,
    )
    for child in children:
        name = display_name(child.key)
        if name is None:
            raise RenderError(f"cannot render listing entry {child.key!r}")
        href = mount + "/" + child.key
        modified = child.uploaded_at or SYNTHETIC_DATE
        if child.is_folder:
            _response(multistatus, href, name, True, modified)
        else:
            _response(multistatus, href, name, False, modified, child.size)
    return ET.tostring(multistatus, encoding="utf-8", xml_declaration=True)


def render_error(message):
    """Render a top-level ``D:error`` document carrying ``message``."""
    error = ET.Element(_tag("error"))
    error.text = message
    return ET.tostring(error, encoding="utf-8", xml_declaration=True)
