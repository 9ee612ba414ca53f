import pytest

from inspector.core.errors import InvalidTargetError
from inspector.inspection import detect_ga4, detect_shopify, discover_identifiers
from inspector.utils.urls import build_force_variation_url, validate_target_url


PAGE = """
<html>
<head>
  <script src="https://cdn.optimizely.com/js/24680.js"></script>
  <link rel="preload" href="https://cdn.optimizely.com/datafiles/13579.json">
  <script src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC123"></script>
  <script src="https://www.googletagmanager.com/gtag/js?id=G-ABCDEFGH12"></script>
  <script>
    window.optimizelyConfig = {"projectId": "12345678"};
    gtag("config", "G-ZYXWVUTS98");
  </script>
</head>
<body></body>
</html>
"""


def test_discover_identifiers_in_page_order():
    assert discover_identifiers(PAGE) == ["24680", "13579", "12345678"]


def test_discover_identifiers_none():
    assert discover_identifiers("<html><script>var x = 1;</script></html>") == []


def test_detect_ga4_from_markup():
    ga4 = detect_ga4(PAGE)

    assert ga4.detected
    assert ga4.gtm_containers == ["GTM-ABC123"]
    assert ga4.measurement_ids == ["G-ABCDEFGH12", "G-ZYXWVUTS98"]


def test_detect_ga4_from_runtime_only():
    ga4 = detect_ga4("<html></html>", {"dataLayer": True, "dataLayerContents": [{"event": "gtm.js"}]})

    assert ga4.detected
    assert ga4.data_layer == [{"event": "gtm.js"}]


def test_detect_ga4_absent():
    assert not detect_ga4("<html></html>").detected


def test_detect_shopify():
    assert detect_shopify(None) is None

    shopify = detect_shopify({"shop": {"name": "demo.myshopify.com"}, "theme": "not a dict"})
    assert shopify.detected
    assert shopify.shop == {"name": "demo.myshopify.com"}
    assert shopify.theme is None


@pytest.mark.parametrize("url, message", [
    ("", "URL is required"),
    ("ftp://example.com", "Invalid protocol: ftp"),
    ("example.com/page", "Invalid protocol: none"),
    ("http://", "Invalid URL provided"),
    ("http://[::1", "Invalid URL provided"),
])
def test_validate_target_url_rejects(url, message):
    with pytest.raises(InvalidTargetError, match=message):
        validate_target_url(url)


def test_validate_target_url_accepts():
    assert validate_target_url(" https://example.com/p?q=1 ") == "https://example.com/p?q=1"


def test_force_variation_url():
    url = build_force_variation_url("https://example.com/p?utm=x&optimizely_x1=5", "1", "10")
    assert url == "https://example.com/p?utm=x&optimizely_x1=10"

    assert build_force_variation_url("https://example.com/", 7, 70) == "https://example.com/?optimizely_x7=70"
