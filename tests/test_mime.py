from __future__ import annotations

import base64
import gzip

import pytest

from nodeforge import UserDataError
from nodeforge.bootstrap import mime
from nodeforge.bootstrap.mime import Part
from nodeforge.constants import CLOUD_CONFIG_CONTENT_TYPE, NODE_CONFIG_CONTENT_TYPE, SHELL_CONTENT_TYPE

pytestmark = [pytest.mark.xdist_group("unit")]

ARCHIVE = """MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="BOUNDARY"

--BOUNDARY
Content-Type: text/x-shellscript; charset="us-ascii"

#!/bin/bash
echo first

--BOUNDARY
Content-Type: text/x-shellscript; charset="us-ascii"

#!/bin/bash
echo second

--BOUNDARY--
"""

CONTENT_TYPE_FIRST = """Content-Type: multipart/mixed; boundary="BOUNDARY"
MIME-Version: 1.0

--BOUNDARY
Content-Type: text/x-shellscript; charset="us-ascii"

echo reordered

--BOUNDARY--
"""

GZIP_PAYLOAD = base64.b64encode(gzip.compress(b"#!/bin/bash\necho compressed\n", mtime=0)).decode()

GZIP_ARCHIVE = (
    "MIME-Version: 1.0\n"
    'Content-Type: multipart/mixed; boundary="B"\n'
    "\n"
    "--B\n"
    "Content-Type: application/x-gzip\n"
    "Content-Transfer-Encoding: base64\n"
    'Content-Disposition: attachment; filename="setup.sh.gz"\n'
    "\n"
    f"{GZIP_PAYLOAD}\n"
    "--B--\n"
)


class TestIsMime:
    def test_mime_version_first(self):
        assert mime.is_mime(ARCHIVE)

    def test_content_type_first(self):
        assert mime.is_mime(CONTENT_TYPE_FIRST)

    def test_bare_script(self):
        assert not mime.is_mime("#!/bin/bash\necho hi\n")


class TestInferContentType:
    def test_shell(self):
        assert mime.infer_content_type("#!/bin/bash\necho hi") == SHELL_CONTENT_TYPE

    def test_cloud_config(self):
        assert mime.infer_content_type("#cloud-config\npackages: []") == CLOUD_CONFIG_CONTENT_TYPE

    def test_node_config(self):
        doc = "apiVersion: node.eks.aws/v1alpha1\nkind: NodeConfig\nspec: {}\n"
        assert mime.infer_content_type(doc) == NODE_CONFIG_CONTENT_TYPE

    def test_other_yaml_is_shell(self):
        assert mime.infer_content_type("apiVersion: v1\nkind: Pod\n") == SHELL_CONTENT_TYPE

    def test_plain_text_is_shell(self):
        assert mime.infer_content_type("echo hi") == SHELL_CONTENT_TYPE


class TestParse:
    def test_archive(self):
        parts = mime.parse(ARCHIVE)
        assert [p.content for p in parts] == [
            "#!/bin/bash\necho first\n",
            "#!/bin/bash\necho second\n",
        ]
        assert all(p.content_type == SHELL_CONTENT_TYPE for p in parts)

    def test_content_type_before_mime_version(self):
        parts = mime.parse(CONTENT_TYPE_FIRST)
        assert len(parts) == 1
        assert parts[0].content == "echo reordered\n"

    def test_bare_document(self):
        parts = mime.parse("#!/bin/bash\necho hi\n")
        assert parts == [Part(SHELL_CONTENT_TYPE, "#!/bin/bash\necho hi\n")]

    def test_empty(self):
        assert mime.parse("") == []
        assert mime.parse("   \n") == []

    def test_base64_part(self):
        encoded = base64.b64encode(b"echo encoded\n").decode()
        archive = (
            "MIME-Version: 1.0\n"
            'Content-Type: multipart/mixed; boundary="B"\n'
            "\n"
            "--B\n"
            "Content-Type: text/x-shellscript\n"
            "Content-Transfer-Encoding: base64\n"
            "\n"
            f"{encoded}\n"
            "--B--\n"
        )
        (part,) = mime.parse(archive)
        assert part.content == encoded
        assert part.transfer_encoding == "base64"
        assert part.data() == b"echo encoded\n"

    def test_archive_without_parts(self):
        archive = 'MIME-Version: 1.0\nContent-Type: multipart/mixed; boundary="B"\n\nno boundary here\n'
        with pytest.raises(UserDataError, match="no parts"):
            mime.parse(archive, "AL2")

    def test_unterminated_archive(self):
        archive = (
            "MIME-Version: 1.0\n"
            'Content-Type: multipart/mixed; boundary="B"\n'
            "\n"
            "--B\n"
            "Content-Type: text/x-shellscript\n"
            "\n"
            "echo hi\n"
        )
        with pytest.raises(UserDataError, match="Invalid custom data for AL2"):
            mime.parse(archive, "AL2")


class TestRender:
    def test_layout(self):
        rendered = mime.render([Part("text/plain", "hello")])
        assert rendered == (
            "MIME-Version: 1.0\n"
            'Content-Type: multipart/mixed; boundary="//"\n'
            "\n"
            "--//\n"
            "Content-Type: text/plain\n"
            "\n"
            "hello\n"
            "--//--\n"
        )

    def test_rendered_archive_parses_back(self):
        parts = [Part(SHELL_CONTENT_TYPE, "echo a"), Part(NODE_CONFIG_CONTENT_TYPE, "kind: NodeConfig")]
        parsed = mime.parse(mime.render(parts))
        assert [(p.content_type, p.content) for p in parsed] == [
            (SHELL_CONTENT_TYPE, "echo a"),
            (NODE_CONFIG_CONTENT_TYPE, "kind: NodeConfig"),
        ]

    def test_parsed_part_keeps_its_headers(self):
        (part,) = mime.parse(GZIP_ARCHIVE)
        assert part.headers == (
            ("Content-Type", "application/x-gzip"),
            ("Content-Transfer-Encoding", "base64"),
            ("Content-Disposition", 'attachment; filename="setup.sh.gz"'),
        )
        assert part.header_lines() == [
            "Content-Type: application/x-gzip",
            "Content-Transfer-Encoding: base64",
            'Content-Disposition: attachment; filename="setup.sh.gz"',
        ]


class TestMerge:
    generated = [Part(SHELL_CONTENT_TYPE, "echo generated")]

    def test_no_user_data(self):
        parsed = mime.parse(mime.merge(None, self.generated))
        assert [(p.content_type, p.content) for p in parsed] == [(SHELL_CONTENT_TYPE, "echo generated")]

    def test_user_parts_first_in_order(self):
        contents = [p.content for p in mime.parse(mime.merge(ARCHIVE, self.generated))]
        assert contents == ["#!/bin/bash\necho first\n", "#!/bin/bash\necho second\n", "echo generated"]

    def test_user_sections_written_back_unchanged(self):
        merged = mime.merge(ARCHIVE, self.generated)
        first = 'Content-Type: text/x-shellscript; charset="us-ascii"\n\n#!/bin/bash\necho first\n\n--//\n'
        second = 'Content-Type: text/x-shellscript; charset="us-ascii"\n\n#!/bin/bash\necho second\n\n--//\n'
        assert first + second in merged

    def test_compressed_user_part_kept_encoded(self):
        merged = mime.merge(GZIP_ARCHIVE, self.generated, family="AL2")
        section = GZIP_ARCHIVE.split("--B\n", 1)[1].removesuffix("--B--\n")
        assert f"--//\n{section}--//\n" in merged

        user, generated = mime.parse(merged)
        assert user.content == GZIP_PAYLOAD
        assert gzip.decompress(user.data()) == b"#!/bin/bash\necho compressed\n"
        assert generated.content == "echo generated"

    def test_invalid_base64_part(self):
        archive = GZIP_ARCHIVE.replace(GZIP_PAYLOAD, "abc")
        with pytest.raises(UserDataError, match="invalid base64 part"):
            mime.merge(archive, self.generated, family="AL2")

    def test_bare_user_script_first(self):
        parts = mime.parse(mime.merge("#!/bin/bash\necho user", self.generated))
        assert [p.content for p in parts] == ["#!/bin/bash\necho user", "echo generated"]

    def test_merging_twice_appends_again(self):
        once = mime.merge(None, self.generated)
        twice = mime.merge(once, self.generated)
        assert len(mime.parse(twice)) == 2
