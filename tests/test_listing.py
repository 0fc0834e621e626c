import xml.etree.ElementTree as ET
from datetime import datetime
from datetime import timezone

import pytest

from s3dav.errors import RenderError
from s3dav.listing import http_date
from s3dav.listing import immediate_children
from s3dav.listing import render
from s3dav.listing import render_error
from s3dav.models import ObjectSummary


NS = {"D": "DAV:"}
UPLOADED = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def _responses(body):
    root = ET.fromstring(body)
    assert root.tag == "{DAV:}multistatus"
    return root.findall("D:response", NS)


def _prop(response, name):
    return response.find(f"D:propstat/D:prop/D:{name}", NS)


class TestImmediateChildren:
    def test_drops_own_marker_and_collapses_nested(self):
        summaries = [
            ObjectSummary("x/", 0, UPLOADED),
            ObjectSummary("x/b.txt", 1, UPLOADED),
            ObjectSummary("x/a.txt", 2, UPLOADED),
            ObjectSummary("x/sub/deep/c.txt", 3, UPLOADED),
            ObjectSummary("x/sub/d.txt", 4, UPLOADED),
        ]
        children = immediate_children("x/", summaries)
        assert [c.key for c in children] == ["x/a.txt", "x/b.txt", "x/sub/"]
        assert children[2].is_folder

    def test_explicit_marker_wins_over_synthesized_folder(self):
        summaries = [
            ObjectSummary("sub/a.txt", 1, UPLOADED),
            ObjectSummary("sub/", 0, UPLOADED),
        ]
        children = immediate_children("", summaries)
        assert len(children) == 1
        assert children[0].uploaded_at == UPLOADED

    def test_ignores_keys_outside_prefix(self):
        summaries = [ObjectSummary("y/a.txt", 1, UPLOADED)]
        assert immediate_children("x/", summaries) == []


class TestRender:
    def test_collection_with_file_and_folder(self):
        children = [
            ObjectSummary("x/a.txt", 10, UPLOADED),
            ObjectSummary("x/sub/", 0, UPLOADED),
        ]
        responses = _responses(render("/x", children))

        assert len(responses) == 3
        own, file_, folder = responses

        assert own.find("D:href", NS).text == "/x"
        assert _prop(own, "displayname").text == "x"
        assert _prop(own, "resourcetype").find("D:collection", NS) is not None
        assert _prop(own, "getlastmodified").text == "Mon, 01 Jan 2024 00:00:00 GMT"
        assert _prop(own, "creationdate").text == "2024-01-01T00:00:00Z"

        assert file_.find("D:href", NS).text == "/x/a.txt"
        assert _prop(file_, "displayname").text == "a.txt"
        assert _prop(file_, "resourcetype").find("D:collection", NS) is None
        assert _prop(file_, "getcontentlength").text == "10"
        assert _prop(file_, "getlastmodified").text == "Tue, 04 Mar 2025 05:06:07 GMT"

        assert folder.find("D:href", NS).text == "/x/sub/"
        assert _prop(folder, "displayname").text == "sub"
        assert _prop(folder, "resourcetype").find("D:collection", NS) is not None
        assert _prop(folder, "getcontentlength") is None

        for response in responses:
            status = response.find("D:propstat/D:status", NS).text
            assert status == "HTTP/1.1 200 OK"

    def test_root_display_name(self):
        (own,) = _responses(render("/", []))
        assert own.find("D:href", NS).text == "/"
        assert _prop(own, "displayname").text == "root"

    def test_hrefs_below_mount(self):
        children = [ObjectSummary("x/a.txt", 1, UPLOADED)]
        own, child = _responses(render("/x", children, "/dav"))
        assert own.find("D:href", NS).text == "/dav/x"
        assert child.find("D:href", NS).text == "/dav/x/a.txt"

        (own,) = _responses(render("/", [], "/dav"))
        assert own.find("D:href", NS).text == "/dav"

    def test_uses_dav_prefix(self):
        body = render("/", [])
        assert body.startswith(b"<?xml")
        assert b'<D:multistatus xmlns:D="DAV:">' in body

    def test_special_characters_escaped(self):
        children = [ObjectSummary("<b>&co \"q\".txt", 1, UPLOADED)]
        body = render("/", children)

        assert b"<b>&co" not in body
        (_own, child) = _responses(body)
        assert _prop(child, "displayname").text == '<b>&co "q".txt'
        assert child.find("D:href", NS).text == "/%3Cb%3E%26co%20%22q%22.txt"

    def test_unrenderable_entry(self):
        with pytest.raises(RenderError):
            render("/", [ObjectSummary("/", 0, None)])


class TestHelpers:
    def test_http_date_naive_is_utc(self):
        assert http_date(datetime(2024, 1, 1)) == "Mon, 01 Jan 2024 00:00:00 GMT"

    def test_render_error(self):
        root = ET.fromstring(render_error("bucket <gone>"))
        assert root.tag == "{DAV:}error"
        assert root.text == "bucket <gone>"
