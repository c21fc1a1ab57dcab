import json
import logging

import pytest

from docx_template_toolkit import cli, logging_config
from docx_template_toolkit.core.package import DocxPackage


@pytest.fixture
def no_logging_setup(monkeypatch):
    """Keep the CLI from reconfiguring logging of the test process."""
    monkeypatch.setattr(cli, "setup_logging", lambda: None)


@pytest.fixture
def restore_logging():
    """Undo dictConfig side effects on the package logger."""
    yield
    logger = logging.getLogger("docx_template_toolkit")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class TestCli:
    """Test cases for the docx-template command."""

    def _files(self, tmp_path, wordml, body, context):
        template = tmp_path / "template.docx"
        template.write_bytes(wordml.docx(body))
        context_file = tmp_path / "context.json"
        context_file.write_text(json.dumps(context), encoding="utf-8")
        return template, context_file, tmp_path / "out.docx"

    def test_renders(self, tmp_path, wordml, no_logging_setup):
        template, context, output = self._files(tmp_path, wordml, wordml.field_paragraph("=name"), {"name": "Ada"})

        assert cli.main([str(template), str(context), str(output)]) == 0

        rendered = DocxPackage.from_file(output)
        assert wordml.text(rendered.dom("word/document.xml")) == "Ada"

    def test_start_page(self, tmp_path, wordml, no_logging_setup):
        from docx.oxml.ns import qn

        template, context, output = self._files(tmp_path, wordml, wordml.text_paragraph("x"), {})

        assert cli.main([str(template), str(context), str(output), "--start-page", "7"]) == 0

        root = DocxPackage.from_file(output).dom("word/document.xml")
        assert root.find(f".//{qn('w:pgNumType')}").get(qn("w:start")) == "7"

    def test_template_error_exit_code(self, tmp_path, wordml, no_logging_setup, capsys):
        template, context, output = self._files(tmp_path, wordml, wordml.field_paragraph("items:endEach"), {})

        assert cli.main([str(template), str(context), str(output)]) == 1
        assert "items:endEach" in capsys.readouterr().err
        assert not output.exists()

    def test_unreadable_context(self, tmp_path, wordml, no_logging_setup):
        template, context, output = self._files(tmp_path, wordml, "", {})
        context.write_text("{not json", encoding="utf-8")

        assert cli.main([str(template), str(context), str(output)]) == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("v")


class TestSetupLogging:
    """Test cases for logging_config.setup_logging."""

    def test_writes_to_configured_directory(self, tmp_path, monkeypatch, restore_logging):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("DOCX_TEMPLATE_LOG_DIR", str(log_dir))

        logging_config.setup_logging()
        logging.getLogger("docx_template_toolkit.test").warning("hello")

        assert (log_dir / "render.log").exists()

    def test_debug_override(self, tmp_path, monkeypatch, restore_logging):
        monkeypatch.setenv("DOCX_TEMPLATE_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("DOCX_TEMPLATE_DEBUG", "true")

        logging_config.setup_logging()

        assert logging.getLogger("docx_template_toolkit").level == logging.DEBUG
