"""
Tests for URLService business logic, independent of HTTP.
"""

import asyncio
import re
from datetime import timedelta

import pytest

from shortener_app.exceptions import (
    DuplicateShortcodeError,
    GenerationExhaustedError,
    InvalidShortcodeError,
    InvalidURLError,
    InvalidValidityError,
    ShortcodeTakenError,
    ShortUrlExpiredError,
    ShortUrlNotFoundError,
)
from shortener_app.geolocation.strategies import GeoLookup
from shortener_app.services.url_service import URLService
from shortener_app.storage.models import ClickContext
from shortener_app.storage.strategies import InMemoryURLStorage, SQLURLStorage

SHORTCODE_RE = re.compile(r"^[A-Za-z0-9_-]{1,20}$")


class ScriptedCodes:
    """Hands out predefined codes and records the requested lengths"""

    def __init__(self, *codes):
        self.codes = list(codes)
        self.lengths = []

    def generate(self, length: int) -> str:
        self.lengths.append(length)
        return self.codes.pop(0) if len(self.codes) > 1 else self.codes[0]


class UnavailableStorage(InMemoryURLStorage):
    name = "unavailable"

    def is_ready(self) -> bool:
        return False


class BlindLookupStorage(InMemoryURLStorage):
    """Lookup never sees existing codes, as if another writer raced us"""

    async def find_by_shortcode(self, shortcode):
        return None


class FailingClickStorage(InMemoryURLStorage):
    async def append_click(self, shortcode, click):
        raise RuntimeError("disk full")


class ExplodingGeoLocator:
    def lookup(self, ip):
        raise RuntimeError("provider down")


class TestCreateShortUrl:
    """Test short URL creation rules"""

    def test_generated_shortcode(self, service, clock):
        """Test generated codes are 6 chars and expiry is exact"""
        url = asyncio.run(service.create_short_url("https://example.com", 1))

        assert len(url.shortcode) == 6
        assert SHORTCODE_RE.match(url.shortcode)
        assert url.created_at == clock.now
        assert url.expires_at == url.created_at + timedelta(minutes=1)
        assert url.validity_minutes == 1
        assert url.click_count == 0
        assert url.is_active is True

    def test_default_validity(self, service):
        """Test validity defaults to 30 minutes"""
        url = asyncio.run(service.create_short_url("https://example.com"))
        assert url.expires_at - url.created_at == timedelta(minutes=30)

        url = asyncio.run(service.create_short_url("https://example.com", None))
        assert url.validity_minutes == 30

    def test_validity_bounds(self, service):
        """Test the accepted validity window is 1..525600 minutes"""
        asyncio.run(service.create_short_url("https://example.com", 1))
        asyncio.run(service.create_short_url("https://example.com", 525600))

        for validity in (0, 525601, -1, 2.5, True, "30"):
            with pytest.raises(InvalidValidityError):
                asyncio.run(service.create_short_url("https://example.com", validity))

    def test_invalid_url(self, service):
        """Test URLs without scheme or host are rejected"""
        for bad in ("not-a-url", "", "http://", "example.com/path", None, 42):
            with pytest.raises(InvalidURLError):
                asyncio.run(service.create_short_url(bad))

    def test_malformed_host(self, service):
        """Test hosts with spaces or forbidden characters are rejected"""
        for bad in ("https://exa mple.com", "http://a<b>.com/", "https://example.com\\evil"):
            with pytest.raises(InvalidURLError):
                asyncio.run(service.create_short_url(bad))

    def test_url_is_stored_stripped(self, service):
        """Test the URL that was validated is the one redirected to"""
        url = asyncio.run(service.create_short_url("  https://example.com/page \n", 30, "padded"))

        assert url.original_url == "https://example.com/page"
        assert asyncio.run(service.resolve_and_track("padded")) == "https://example.com/page"

    def test_same_url_gets_different_codes(self, service):
        """Test the same long URL can be shortened many times"""
        url1 = asyncio.run(service.create_short_url("https://www.test.com/"))
        url2 = asyncio.run(service.create_short_url("https://www.test.com/"))

        assert url1.shortcode != url2.shortcode
        assert url1.original_url == url2.original_url

    def test_custom_shortcode_is_sanitized(self, service):
        """Test whitespace and foreign characters are stripped from custom codes"""
        url = asyncio.run(service.create_short_url("https://example.com", 30, "  my code!  "))
        assert url.shortcode == "mycode"

    def test_invalid_custom_shortcode(self, service):
        """Test custom codes that cannot be sanitized into a valid one"""
        for bad in ("!!!", "   ", "x" * 21):
            with pytest.raises(InvalidShortcodeError):
                asyncio.run(service.create_short_url("https://example.com", 30, bad))

    def test_custom_shortcode_taken(self, service):
        """Test a custom shortcode can only be used once"""
        asyncio.run(service.create_short_url("https://one.example", 30, "ab"))

        with pytest.raises(ShortcodeTakenError):
            asyncio.run(service.create_short_url("https://two.example", 30, "ab"))

    def test_custom_shortcode_taken_by_expired_record(self, service, clock):
        """Test uniqueness holds even while the holder is expired but not swept"""
        asyncio.run(service.create_short_url("https://one.example", 1, "ab"))
        clock.advance(3600)

        with pytest.raises(ShortcodeTakenError):
            asyncio.run(service.create_short_url("https://two.example", 30, "ab"))

    def test_concurrent_custom_shortcode(self, service):
        """Test two concurrent creations of one custom code: one wins, one is rejected"""
        async def create_both():
            return await asyncio.gather(
                service.create_short_url("https://one.example", 30, "race"),
                service.create_short_url("https://two.example", 30, "race"),
                return_exceptions=True,
            )

        results = asyncio.run(create_both())

        errors = [r for r in results if isinstance(r, Exception)]
        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ShortcodeTakenError)

    def test_insert_conflict_maps_to_taken(self, clock):
        """Test a conflict detected by storage on insert is reported as taken"""
        service = URLService(storage=BlindLookupStorage(), clock=clock)
        asyncio.run(service.create_short_url("https://one.example", 30, "ab"))

        with pytest.raises(ShortcodeTakenError):
            asyncio.run(service.create_short_url("https://two.example", 30, "ab"))

    def test_generated_collision_grows_length(self, memory_storage, clock):
        """Test each collision retries with one more character"""
        codes = ScriptedCodes("AAAAAA", "BBBBBBB")
        service = URLService(storage=memory_storage, short_code_strategy=codes, clock=clock)
        asyncio.run(service.create_short_url("https://taken.example", 30, "AAAAAA"))

        url = asyncio.run(service.create_short_url("https://example.com"))

        assert url.shortcode == "BBBBBBB"
        assert codes.lengths == [6, 7]

    def test_generated_insert_conflict_is_retried(self, clock):
        """Test a generated code lost to a concurrent insert is retried"""
        storage = BlindLookupStorage()
        codes = ScriptedCodes("AAAAAA", "AAAAAA", "CCCCCCCC")
        service = URLService(storage=storage, short_code_strategy=codes, clock=clock)

        first = asyncio.run(service.create_short_url("https://one.example"))
        second = asyncio.run(service.create_short_url("https://two.example"))

        assert first.shortcode == "AAAAAA"
        assert second.shortcode == "CCCCCCCC"

    def test_generation_exhausted(self, memory_storage, clock):
        """Test generation gives up after 10 attempts"""
        codes = ScriptedCodes("dup")
        service = URLService(storage=memory_storage, short_code_strategy=codes, clock=clock)
        asyncio.run(service.create_short_url("https://example.com"))
        codes.lengths.clear()

        with pytest.raises(GenerationExhaustedError):
            asyncio.run(service.create_short_url("https://example.com"))

        assert codes.lengths == list(range(6, 16))


class TestResolveAndTrack:
    """Test redirects and click tracking"""

    def test_resolve_returns_original_url(self, service):
        """Test resolving a fresh code"""
        url = asyncio.run(service.create_short_url("https://www.example.com/page?q=1"))

        original = asyncio.run(service.resolve_and_track(url.shortcode))
        assert original == "https://www.example.com/page?q=1"

    def test_not_found(self, service):
        """Test resolving an unknown code"""
        with pytest.raises(ShortUrlNotFoundError):
            asyncio.run(service.resolve_and_track("nonexistent"))

    def test_expired_after_validity(self, service, memory_storage, clock):
        """Test a one-minute link is expired 61 seconds later and is not deleted"""
        url = asyncio.run(service.create_short_url("https://example.com", 1))
        assert len(url.shortcode) == 6

        clock.advance(61)
        with pytest.raises(ShortUrlExpiredError):
            asyncio.run(service.resolve_and_track(url.shortcode, ClickContext()))

        stored = asyncio.run(memory_storage.find_by_shortcode(url.shortcode))
        assert stored is not None
        assert stored.click_count == 0

    def test_each_resolve_appends_one_click(self, service, memory_storage, clock):
        """Test repeated resolves append in order and never rewrite earlier clicks"""
        url = asyncio.run(service.create_short_url("https://example.com"))

        asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(user_agent="first")))
        first_click = asyncio.run(memory_storage.find_by_shortcode(url.shortcode)).clicks[0]

        clock.advance(5)
        asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(user_agent="second")))
        clock.advance(5)
        asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(user_agent="third")))

        stored = asyncio.run(memory_storage.find_by_shortcode(url.shortcode))
        assert stored.click_count == 3
        assert [c.user_agent for c in stored.clicks] == ["first", "second", "third"]
        assert stored.clicks[0] == first_click
        assert stored.clicks[0].timestamp < stored.clicks[1].timestamp < stored.clicks[2].timestamp

    def test_click_defaults(self, service, memory_storage, clock):
        """Test a click without any request metadata"""
        url = asyncio.run(service.create_short_url("https://example.com"))
        asyncio.run(service.resolve_and_track(url.shortcode))

        click = asyncio.run(memory_storage.find_by_shortcode(url.shortcode)).clicks[0]
        assert click.timestamp == clock.now
        assert click.source_ip == "127.0.0.1"
        assert click.referrer == "direct"
        assert click.user_agent == "Unknown"
        assert click.geolocation.country == "Unknown"
        assert click.geolocation.coordinates.lat == 0
        assert click.geolocation.coordinates.lon == 0

    def test_public_ip_is_geolocated(self, service, memory_storage, geolocator):
        """Test a public IP gets the lookup result"""
        url = asyncio.run(service.create_short_url("https://example.com"))
        context = ClickContext(ip="8.8.8.8", referrer="https://news.ycombinator.com/item?id=1")

        asyncio.run(service.resolve_and_track(url.shortcode, context))

        click = asyncio.run(memory_storage.find_by_shortcode(url.shortcode)).clicks[0]
        assert click.source_ip == "8.8.8.8"
        assert click.referrer == "news.ycombinator.com"
        assert click.geolocation.country == "US"
        assert click.geolocation.region == "CA"
        assert click.geolocation.city == "Mountain View"
        assert click.geolocation.coordinates.lat == 37.4
        assert click.geolocation.coordinates.lon == -122.1

    def test_private_ips_are_never_looked_up(self, service, memory_storage, geolocator):
        """Test loopback and private IPs stay Unknown whatever the provider says"""
        private_ips = ["127.0.0.1", "10.1.2.3", "172.16.0.1", "172.31.255.254", "192.168.1.10", "::1"]
        for ip in private_ips:
            geolocator.table[ip] = GeoLookup(country="XX", region="YY", city="Nowhere", lat=1, lon=1)

        url = asyncio.run(service.create_short_url("https://example.com"))
        for ip in private_ips:
            asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(ip=ip)))

        stored = asyncio.run(memory_storage.find_by_shortcode(url.shortcode))
        assert stored.click_count == len(private_ips)
        for click in stored.clicks:
            assert click.geolocation.country == "Unknown"
            assert click.geolocation.region == "Unknown"
            assert click.geolocation.city == "Unknown"
            assert click.geolocation.coordinates.lat == 0
        assert geolocator.calls == []

    def test_partial_lookup_defaults_each_field(self, service, memory_storage, geolocator):
        """Test missing lookup fields are defaulted one by one"""
        geolocator.table["1.1.1.1"] = GeoLookup(country="AU")
        url = asyncio.run(service.create_short_url("https://example.com"))

        asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(ip="1.1.1.1")))

        geo = asyncio.run(memory_storage.find_by_shortcode(url.shortcode)).clicks[0].geolocation
        assert geo.country == "AU"
        assert geo.region == "Unknown"
        assert geo.city == "Unknown"
        assert (geo.coordinates.lat, geo.coordinates.lon) == (0, 0)

    def test_lookup_failure_does_not_block_redirect(self, memory_storage, clock):
        """Test a crashing geolocation provider only loses geolocation"""
        service = URLService(storage=memory_storage, geolocator=ExplodingGeoLocator(), clock=clock)
        url = asyncio.run(service.create_short_url("https://example.com"))

        original = asyncio.run(service.resolve_and_track(url.shortcode, ClickContext(ip="8.8.8.8")))

        assert original == "https://example.com"
        click = asyncio.run(memory_storage.find_by_shortcode(url.shortcode)).clicks[0]
        assert click.geolocation.country == "Unknown"

    def test_tracking_failure_does_not_block_redirect(self, clock):
        """Test the redirect target is returned even when the click cannot be stored"""
        service = URLService(storage=FailingClickStorage(), clock=clock)
        url = asyncio.run(service.create_short_url("https://example.com"))

        assert asyncio.run(service.resolve_and_track(url.shortcode)) == "https://example.com"


class TestStatisticsAndSweep:
    """Test statistics projection and expiry sweep"""

    def test_statistics(self, service, clock):
        """Test statistics fields and click projection"""
        url = asyncio.run(service.create_short_url("https://example.com", 10, "stats"))
        asyncio.run(service.resolve_and_track(
            "stats", ClickContext(ip="8.8.8.8", referrer="https://google.com/search")
        ))

        stats = asyncio.run(service.get_statistics("stats"))

        assert stats.shortcode == "stats"
        assert stats.original_url == "https://example.com"
        assert stats.created_at == url.created_at
        assert stats.expires_at == url.expires_at
        assert stats.validity_minutes == 10
        assert stats.is_expired is False
        assert stats.click_count == 1
        assert stats.clicks[0].referrer == "google.com"
        assert stats.clicks[0].geolocation.city == "Mountain View"

        dumped = stats.model_dump(by_alias=True)
        assert dumped["clickCount"] == 1
        assert set(dumped["clicks"][0]["geolocation"]) == {"country", "region", "city"}

    def test_statistics_not_found(self, service):
        """Test statistics for an unknown code"""
        with pytest.raises(ShortUrlNotFoundError):
            asyncio.run(service.get_statistics("missing"))

    def test_expired_visible_until_swept(self, service, clock):
        """Test expired links are flagged, then removed by the sweep"""
        asyncio.run(service.create_short_url("https://short.example", 1, "short"))
        asyncio.run(service.create_short_url("https://long.example", 60, "long"))
        clock.advance(120)

        assert asyncio.run(service.get_statistics("short")).is_expired is True
        assert asyncio.run(service.get_statistics("long")).is_expired is False

        assert asyncio.run(service.sweep_expired()) == 1

        with pytest.raises(ShortUrlNotFoundError):
            asyncio.run(service.get_statistics("short"))
        assert asyncio.run(service.get_statistics("long")).shortcode == "long"

    def test_swept_code_can_be_reused(self, service, clock):
        """Test a custom code is free again after its record is swept"""
        asyncio.run(service.create_short_url("https://one.example", 1, "again"))
        clock.advance(120)
        asyncio.run(service.sweep_expired())

        url = asyncio.run(service.create_short_url("https://two.example", 1, "again"))
        assert url.original_url == "https://two.example"


class TestBackendSelection:
    """Test durable storage and the in-memory fallback"""

    def test_uses_ready_primary(self, sql_service):
        """Test a ready SQL store serves requests"""
        asyncio.run(sql_service.create_short_url("https://example.com", 30, "sqlcode"))

        assert sql_service.active_backend_name() == "sql"
        assert asyncio.run(sql_service.storage.find_by_shortcode("sqlcode")) is not None

    def test_full_flow_on_sql(self, sql_service, clock):
        """Test create, resolve and statistics on the durable store"""
        url = asyncio.run(sql_service.create_short_url("https://example.com", 1))
        asyncio.run(sql_service.resolve_and_track(url.shortcode, ClickContext(ip="8.8.8.8")))

        stats = asyncio.run(sql_service.get_statistics(url.shortcode))
        assert stats.click_count == 1
        assert stats.clicks[0].geolocation.country == "US"
        assert stats.expires_at == url.expires_at

        clock.advance(61)
        with pytest.raises(ShortUrlExpiredError):
            asyncio.run(sql_service.resolve_and_track(url.shortcode))
        assert asyncio.run(sql_service.sweep_expired()) == 1

    def test_falls_back_when_primary_not_ready(self, clock):
        """Test an unavailable primary is replaced by a pinned in-memory store"""
        primary = UnavailableStorage()
        service = URLService(storage=primary, clock=clock)

        asyncio.run(service.create_short_url("https://example.com", 30, "fb"))

        assert service.active_backend_name() == "memory"
        assert len(primary) == 0
        assert asyncio.run(service.resolve_and_track("fb")) == "https://example.com"

    def test_fallback_is_pinned(self, clock):
        """Test the service never switches back once degraded"""
        primary = UnavailableStorage()
        service = URLService(storage=primary, clock=clock)
        asyncio.run(service.create_short_url("https://example.com", 30, "pinned"))

        primary.is_ready = lambda: True

        assert service.active_backend_name() == "memory"
        assert asyncio.run(service.resolve_and_track("pinned")) == "https://example.com"

    def test_unreachable_database_falls_back(self, tmp_path, clock):
        """Test a database that cannot be opened at startup is not fatal"""
        storage = SQLURLStorage(database_url=f"sqlite:///{tmp_path}/missing/dir/urls.db")
        service = URLService(storage=storage, clock=clock)

        asyncio.run(service.startup())
        url = asyncio.run(service.create_short_url("https://example.com"))

        assert storage.is_ready() is False
        assert service.active_backend_name() == "memory"
        assert asyncio.run(service.resolve_and_track(url.shortcode)) == "https://example.com"
        service.shutdown()

    def test_no_primary_means_memory(self, clock):
        """Test a service built without storage runs in memory"""
        service = URLService(clock=clock)
        asyncio.run(service.create_short_url("https://example.com"))
        assert service.active_backend_name() == "memory"

    def test_duplicate_error_carries_shortcode(self):
        """Test the storage-level conflict names the code"""
        error = DuplicateShortcodeError("abc")
        assert error.shortcode == "abc"
        assert "abc" in str(error)
