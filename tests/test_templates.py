from __future__ import annotations

import shlex

from apk_factory.templates import PROJECT_TEMPLATE, UTIL_TEMPLATES, TemplateRenderer, android_string, dname_escape


def test_vendor_root_shadows_util_root(tmp_path):
    vendor = tmp_path / "vendor"
    util = tmp_path / "util"
    vendor.mkdir()
    util.mkdir()
    (vendor / "shared.txt").write_text("vendor {{ value }}", encoding="utf-8")
    (util / "shared.txt").write_text("util {{ value }}", encoding="utf-8")
    (util / "only-util.txt").write_text("util only {{ value }}", encoding="utf-8")

    renderer = TemplateRenderer([str(vendor), str(util)])

    assert renderer.render("shared.txt", {"value": 1}) == "vendor 1"
    assert renderer.render("only-util.txt", {"value": 2}) == "util only 2"


def test_missing_values_render_empty(tmp_path):
    (tmp_path / "t.txt").write_text("[{{ missing }}][{{ none }}]", encoding="utf-8")
    renderer = TemplateRenderer([str(tmp_path)])
    assert renderer.render("t.txt", {"none": None}) == "[][]"


def test_xml_templates_are_escaped_for_android_strings():
    renderer = TemplateRenderer([PROJECT_TEMPLATE, UTIL_TEMPLATES])
    out = renderer.render("res/values/strings.xml", {"name": "Tom & Jerry's", "description": None})
    assert "Tom &amp; Jerry\\&#39;s" in out
    assert '<string name="app_description"></string>' in out


def test_android_string_escapes_quotes():
    assert android_string("it's \"ok\"") == "it\\'s \\\"ok\\\""
    assert android_string(None) == ""


def test_keygen_template_quotes_every_argument():
    renderer = TemplateRenderer([PROJECT_TEMPLATE, UTIL_TEMPLATES])
    command = renderer.render(
        "keygen.sh",
        {
            "keytool": "/opt/java/bin/keytool",
            "keystore": "/keys/demo.example.com",
            "store_password": "secret pass",
            "alias": "alias",
            "alias_password": "alias_password",
            "commonName": "Jane; rm -rf /",
            "organizationUnit": "https://jane.example.com",
            "organization": "demo.example.com",
            "city": "Unknown",
            "state": "Unknown",
            "countryCode": "XX",
        },
    )
    args = shlex.split(command.replace("\\\n", " "))
    assert args[0] == "/opt/java/bin/keytool"
    assert args[args.index("-storepass") + 1] == "secret pass"
    assert args[args.index("-keystore") + 1] == "/keys/demo.example.com"
    assert args[args.index("-dname") + 1] == (
        "CN=Jane\\; rm -rf /, OU=https://jane.example.com, O=demo.example.com, L=Unknown, S=Unknown, C=XX"
    )


def test_dname_escape_handles_separators_and_edges():
    assert dname_escape("Acme, Inc.") == "Acme\\, Inc."
    assert dname_escape('a+b=c"d\\e<f>g;h') == 'a\\+b\\=c\\"d\\\\e\\<f\\>g\\;h'
    assert dname_escape("#tag ") == "\\#tag\\ "
    assert dname_escape(" ") == "\\ "
    assert dname_escape(None) == ""
