import pytest

from apicloudfront import ApiCloudFrontBuilder, find_output, summary_lines
from conftest import make_config


@pytest.mark.parametrize(
    "outputs",
    [
        {"ApiDistribution": "d111.cloudfront.net", "ServiceEndpoint": "https://api"},
        [
            {"OutputKey": "ServiceEndpoint", "OutputValue": "https://api"},
            {"OutputKey": "ApiDistribution", "OutputValue": "d111.cloudfront.net"},
        ],
    ],
)
def test_find_output_supports_mapping_and_records(outputs):
    assert find_output(outputs) == "d111.cloudfront.net"


@pytest.mark.parametrize(
    "outputs",
    [None, {}, [], {"ServiceEndpoint": "https://api"}, [{"OutputKey": "ApiDistribution"}], ["not-a-record"]],
)
def test_missing_distribution_output_reports_nothing(outputs):
    assert summary_lines(outputs, "api.example.com") == []


def test_summary_lines_with_cname():
    lines = summary_lines({"ApiDistribution": "d111.cloudfront.net"}, "api.example.com")

    assert lines == ["CloudFront domain name", "  d111.cloudfront.net (CNAME: api.example.com)"]


def test_print_summary_falls_back_to_dash():
    builder = ApiCloudFrontBuilder(make_config())

    lines = builder.print_summary({"ApiDistribution": "d111.cloudfront.net"})

    assert lines[1] == "  d111.cloudfront.net (CNAME: -)"


def test_print_summary_joins_domain_list():
    builder = ApiCloudFrontBuilder(make_config({"domain": ["a.example.com", "b.example.com"]}))

    lines = builder.print_summary([{"OutputKey": "ApiDistribution", "OutputValue": "d111.cloudfront.net"}])

    assert lines[1] == "  d111.cloudfront.net (CNAME: a.example.com, b.example.com)"
