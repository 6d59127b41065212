"""
Unit tests for the command line interface
"""
import json
import pytest
import yaml
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from resume2pdf.cli import main
from resume2pdf.exceptions import ServerStartError
from resume2pdf.exporter import ExportResult, ExportSummary


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(temp_dir, site_root):
    path = temp_dir / 'config.yaml'
    path.write_text(yaml.safe_dump({
        'server': {'root': str(site_root), 'port': 0},
        'export': {'output_dir': str(temp_dir / 'dist')},
    }))
    return str(path)


def summary_for(targets, failed=()):
    results = []
    for target in targets:
        results.append(ExportResult(
            target=target,
            success=target.name not in failed,
            pages=1,
            error='[{}] boom'.format(target.name) if target.name in failed else None,
        ))
    return ExportSummary(results)


@pytest.fixture
def exporter_cls():
    with patch('resume2pdf.cli.setup_logging'), patch('resume2pdf.cli.PDFExporter') as mock_cls:
        yield mock_cls


class TestCli:
    """Test option handling and exit codes"""

    def test_list_targets(self, runner, config_file, exporter_cls):
        result = runner.invoke(main, ['--config', config_file, '--list-targets'])

        assert result.exit_code == 0
        assert 'resume ' in result.output
        assert 'intro-cards' in result.output
        assert '210x500mm' in result.output
        exporter_cls.assert_not_called()

    def test_show_rules(self, runner, config_file, exporter_cls):
        result = runner.invoke(main, ['--config', config_file, '--show-rules'])

        assert result.exit_code == 0
        assert json.loads(result.output)[0]['selector'] == '.sidebar'

    def test_success_exit_zero(self, runner, config_file, exporter_cls):
        exporter_cls.return_value.run.side_effect = lambda: summary_for(exporter_cls.call_args.args[1])

        result = runner.invoke(main, ['--config', config_file, '--only', 'resume', '--only', 'portfolio'])

        assert result.exit_code == 0
        config, targets = exporter_cls.call_args.args
        assert [t.name for t in targets] == ['resume', 'portfolio']
        assert config['server']['port'] == 0

    def test_failed_target_exit_one(self, runner, config_file, exporter_cls):
        exporter_cls.return_value.run.side_effect = (
            lambda: summary_for(exporter_cls.call_args.args[1], failed=('portfolio',))
        )

        result = runner.invoke(main, ['--config', config_file, '--only', 'resume', '--only', 'portfolio'])

        assert result.exit_code == 1
        assert 'portfolio' in result.output

    def test_no_strict_exit_zero(self, runner, config_file, exporter_cls):
        exporter_cls.return_value.run.side_effect = (
            lambda: summary_for(exporter_cls.call_args.args[1], failed=('portfolio',))
        )

        result = runner.invoke(main, ['--config', config_file, '--no-strict'])

        assert result.exit_code == 0

    def test_run_error_exit_two(self, runner, config_file, exporter_cls):
        exporter_cls.return_value.run.side_effect = ServerStartError("Could not bind 127.0.0.1:8080")

        result = runner.invoke(main, ['--config', config_file])

        assert result.exit_code == 2
        assert 'Could not bind' in result.output

    def test_unknown_target_exit_two(self, runner, config_file, exporter_cls):
        result = runner.invoke(main, ['--config', config_file, '--only', 'cover-letter'])

        assert result.exit_code == 2
        assert 'Unknown target' in result.output
        exporter_cls.assert_not_called()

    def test_bad_extra_rule_exit_two(self, runner, temp_dir, site_root, exporter_cls):
        path = temp_dir / 'bad-rules.yaml'
        path.write_text(yaml.safe_dump({
            'server': {'root': str(site_root)},
            'normalization': {'extra_rules': [{'kind': 'attribute', 'selector': '.bar', 'attribute': 'data-pct'}]},
        }))

        result = runner.invoke(main, ['--config', str(path), '--show-rules'])

        assert result.exit_code == 2
        assert 'missing required key' in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_cli_overrides(self, runner, config_file, exporter_cls, temp_dir):
        exporter_cls.return_value.run.side_effect = lambda: summary_for(exporter_cls.call_args.args[1])
        out = temp_dir / 'elsewhere'

        result = runner.invoke(main, ['--config', config_file, '--sequential', '--port', '9123',
                                      '--output-dir', str(out), '--only', 'resume'])

        assert result.exit_code == 0
        config, targets = exporter_cls.call_args.args
        assert config['export']['parallel'] is False
        assert config['server']['port'] == 9123
        assert targets[0].output == Path(out) / 'resume.pdf'
