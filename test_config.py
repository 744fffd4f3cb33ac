"""Tests for configuration, list loading and the CLI's fatal-error handling."""
import asyncio
import io

import pytest
from rich.console import Console

import nsrip.cli as cli
import nsrip.pipeline as pipeline
from nsrip.config import ConfigError, ScanConfig
from nsrip.models import ARecord, Answer
from nsrip.sources import PROVIDERS, load_domains, load_nameservers, read_list


def test_defaults():
    cfg = ScanConfig.build(domain="a.test")
    assert cfg.workers == 10
    assert cfg.timeout_seconds == 5.0
    assert cfg.port == 53
    assert cfg.nameservers == "cloud"


@pytest.mark.parametrize("workers", [0, -1])
def test_non_positive_workers_rejected(workers):
    with pytest.raises(ConfigError, match="Invalid number of workers"):
        ScanConfig.build(domain="a.test", workers=workers)


def test_domain_or_list_is_required():
    with pytest.raises(ConfigError, match="must provide either a domain"):
        ScanConfig.build(workers=3)


def test_yaml_values_are_overridden_by_explicit_flags(tmp_path):
    path = tmp_path / "scan.yaml"
    path.write_text("domain: a.test\nworkers: 3\nnameservers: aws\nverbose: true\n")

    cfg = ScanConfig.from_sources(str(path), {"workers": 7, "nameservers": None, "quiet": None})

    assert cfg.domain == "a.test"
    assert cfg.workers == 7
    assert cfg.nameservers == "aws"
    assert cfg.verbose is True
    assert cfg.quiet is False


def test_load_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ScanConfig.load(str(tmp_path / "nope.yaml"))


def test_invalid_yaml_config(tmp_path):
    path = tmp_path / "scan.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        ScanConfig.load(str(path))


def test_provider_bundles():
    aws = load_nameservers("aws")
    cloud = load_nameservers("cloud")

    assert aws and all("awsdns" in ns for ns in aws)
    assert len(cloud) == sum(len(load_nameservers(p)) for p in ("aws", "azure", "gcp"))
    assert set(PROVIDERS) == {"aws", "azure", "gcp", "cloud"}


def test_custom_nameserver_file_keeps_duplicates_and_drops_blank_lines(tmp_path):
    path = tmp_path / "ns.txt"
    path.write_text("ns1.example\n\n  ns2.example  \nns1.example\n")

    assert load_nameservers(str(path)) == ["ns1.example", "ns2.example", "ns1.example"]


def test_unreadable_list_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError, match="Error opening file"):
        read_list(str(tmp_path / "missing.txt"))


def test_domain_file_takes_precedence(tmp_path):
    path = tmp_path / "domains.txt"
    path.write_text("a.test\nb.test\n")

    assert load_domains("ignored.test", str(path)) == ["a.test", "b.test"]
    assert load_domains("only.test", None) == ["only.test"]
    with pytest.raises(ConfigError):
        load_domains(None, None)


def test_cli_rejects_bad_worker_count_before_any_io(monkeypatch):
    def forbidden(*args, **kwargs):
        raise AssertionError("lists must not be loaded")

    monkeypatch.setattr(cli, "load_nameservers", forbidden)
    monkeypatch.setattr(cli, "load_domains", forbidden)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-d", "a.test", "-w", "0"])

    assert excinfo.value.code == 1


def test_cli_requires_a_target():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-q"])
    assert excinfo.value.code == 1


def test_cli_unreadable_nameserver_list_is_fatal(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-q", "-d", "a.test", "-n", str(tmp_path / "missing.txt")])
    assert excinfo.value.code == 1


def test_main_async_writes_results(tmp_path, monkeypatch):
    ns_file = tmp_path / "ns.txt"
    ns_file.write_text("ns1.example\n")
    output = tmp_path / "out.txt"

    async def lookup(hostname):
        return "203.0.113.5"

    async def engine(domain, nameserver_ip):
        return Answer(nameserver_ip=nameserver_ip, domain=domain, records=[ARecord(address="198.51.100.9")])

    async def scan_with_fakes(*args, **kwargs):
        kwargs.update(lookup=lookup, engine=engine)
        return await pipeline.run_scan(*args, **kwargs)

    monkeypatch.setattr(cli, "run_scan", scan_with_fakes)
    out = io.StringIO()
    cfg = ScanConfig.build(domain="a.test", nameservers=str(ns_file), quiet=True, output=str(output))

    code = asyncio.run(cli.main_async(
        cfg,
        console=Console(file=out, width=200, color_system=None),
        status=Console(file=io.StringIO()),
    ))

    assert code == 0
    assert out.getvalue() == "[ns1.example (203.0.113.5)] a.test => 198.51.100.9\n"
    assert output.read_text() == "[ns1.example (203.0.113.5)] a.test => 198.51.100.9\n"
