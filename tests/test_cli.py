from datetime import date

import pytest

import cli
from scrapers.errors import RunFault
from scrapers.models import ScrapeResult
from utils import settings

from conftest import make_review


@pytest.fixture(autouse=True)
def logs_in_tmp(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "LOGS_DIR", tmp_path / "logs")


def test_parser_reads_iso_dates(tmp_path):
    args = cli.build_parser().parse_args(
        [str(tmp_path / "urls.txt"), "--date-from", "2024-01-01", "--locale", "us", "--no-robots"])
    assert args.date_from == date(2024, 1, 1)
    assert args.date_to is None
    assert args.locale == "us"
    assert args.no_robots


def test_parser_rejects_bad_date(tmp_path):
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([str(tmp_path / "urls.txt"), "--date-from", "01/02/2024"])


def test_read_urls_skips_blanks(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text("www.tesco.com/groceries/en-GB/products/1\n\n  \nhttps://x.example/p/2\n")
    assert cli.read_urls(path) == ["https://www.tesco.com/groceries/en-GB/products/1",
                                   "https://x.example/p/2"]


def test_reversed_dates_exit_2(tmp_path):
    code = cli.main([str(tmp_path / "urls.txt"), "--date-from", "2024-05-01", "--date-to", "2024-01-01"])
    assert code == 2


def test_missing_or_empty_url_file_exits_2(tmp_path):
    assert cli.main([str(tmp_path / "missing.txt")]) == 2
    empty = tmp_path / "empty.txt"
    empty.write_text("\n\n")
    assert cli.main([str(empty)]) == 2


def test_successful_run_writes_csv(tmp_path, monkeypatch):
    urls = tmp_path / "urls.txt"
    urls.write_text("https://www.tesco.com/groceries/en-GB/products/111\n")
    out = tmp_path / "out.csv"
    seen = {}

    async def fake_scrape_many(urls, **kwargs):
        seen.update(kwargs, urls=urls)
        return ScrapeResult(reviews=[make_review()], csv_content="a,b\r\nc,d\r\n",
                            filename="reviews.csv", total_products=1, successful_products=1)

    monkeypatch.setattr(cli, "scrape_many", fake_scrape_many)
    assert cli.main([str(urls), "-o", str(out), "--no-robots"]) == 0
    assert out.read_bytes() == b"a,b\r\nc,d\r\n"
    assert seen["respect_robots"] is False
    assert seen["urls"] == ["https://www.tesco.com/groceries/en-GB/products/111"]


def test_run_fault_exits_1(tmp_path, monkeypatch):
    urls = tmp_path / "urls.txt"
    urls.write_text("https://www.tesco.com/groceries/en-GB/products/111\n")

    async def failing(urls, **kwargs):
        raise RunFault("No reviews were found for any of the provided URLs")

    monkeypatch.setattr(cli, "scrape_many", failing)
    assert cli.main([str(urls)]) == 1
