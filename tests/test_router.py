"""Test destination routing from path segments."""

import pytest
from hypothesis import given, strategies as st

from p2irc.core.errors import InvalidRequestShape, UnknownShortcut
from p2irc.gateway.router import AddressResolver, Destination, with_default_port

SHORTCUTS = {
    "linux": ("irc.libera.chat:6667", "linux"),
    "ro": ("irc.dot.org.es:6667", "romanian"),
    "bare": ("irc.example.net", "test"),
}


def _resolver() -> AddressResolver:
    return AddressResolver(SHORTCUTS, "ro")


class TestAddressResolver:
    """Test the 0 / 1 / 2 segment contract."""

    def test_no_segments_is_default(self):
        # Arrange / Act
        dest = _resolver().resolve([])

        # Assert
        assert dest == Destination("irc.dot.org.es:6667", "romanian")

    def test_default_shortcut_equals_default(self):
        resolver = _resolver()
        assert resolver.resolve(["ro"]) == resolver.default

    def test_shortcut_lookup(self):
        dest = _resolver().resolve(["linux"])
        assert dest.server == "irc.libera.chat:6667"
        assert dest.channel == "linux"

    def test_shortcut_without_port_gets_default_port(self):
        assert _resolver().resolve(["bare"]).server == "irc.example.net:6667"

    def test_unknown_shortcut(self):
        # Act & Assert
        with pytest.raises(UnknownShortcut) as exc_info:
            _resolver().resolve(["nope"])
        assert "nope" in str(exc_info.value)
        assert isinstance(exc_info.value, InvalidRequestShape)

    def test_shortcut_lookup_is_exact(self):
        with pytest.raises(UnknownShortcut):
            _resolver().resolve(["Linux"])

    def test_two_segments_appends_port(self):
        # Act
        dest = _resolver().resolve(["irc.example.org", "chat"])

        # Assert
        assert dest.server == "irc.example.org:6667"
        assert dest.channel == "chat"

    def test_two_segments_keeps_explicit_port(self):
        dest = _resolver().resolve(["irc.example.org:7000", "chat"])
        assert dest.server == "irc.example.org:7000"

    def test_custom_default_port(self):
        resolver = AddressResolver(SHORTCUTS, "ro", default_port=6697)
        assert resolver.resolve(["irc.example.org", "chat"]).server == "irc.example.org:6697"

    @given(st.lists(st.text(min_size=1), min_size=3, max_size=12))
    def test_more_than_two_segments_is_invalid(self, path):
        with pytest.raises(InvalidRequestShape):
            _resolver().resolve(path)

    @pytest.mark.parametrize(
        "path",
        [
            ["127.0.0.1:6667", "test\r\nPRIVMSG NickServ :IDENTIFY x"],
            ["127.0.0.1:6667", "test\nQUIT"],
            ["127.0.0.1:6667", "test\0"],
            ["127.0.0.1:6667", "a,b"],
            ["127.0.0.1:6667", "two words"],
            ["irc.example.org\r\nQUIT", "chat"],
        ],
    )
    def test_segment_with_line_break_or_separator_is_invalid(self, path):
        # Act & Assert
        with pytest.raises(InvalidRequestShape) as exc_info:
            _resolver().resolve(path)
        assert exc_info.value.code == "invalid_segment"
        assert str(exc_info.value) == "Invalid request"

    def test_bad_shortcut_target_is_invalid(self):
        shortcuts = {**SHORTCUTS, "bad": ("irc.example.net", "a b")}
        resolver = AddressResolver(shortcuts, "ro")

        with pytest.raises(InvalidRequestShape):
            resolver.resolve(["bad"])

    def test_unknown_default_rejected(self):
        with pytest.raises(ValueError):
            AddressResolver(SHORTCUTS, "missing")

    def test_usage_lists_every_shortcut(self):
        # Act
        lines = _resolver().usage()

        # Assert
        assert lines[0].startswith("Usage example:")
        assert "p2irc/irc.dot.org.es:6667/romanian" in lines[0]
        assert "linux: irc.libera.chat:6667, linux" in lines
        assert "ro: irc.dot.org.es:6667, romanian" in lines


class TestDestination:
    def test_host_and_port(self):
        dest = Destination("irc.example.org:7000", "chat")
        assert dest.host == "irc.example.org"
        assert dest.port == 7000

    def test_channel_gets_hash(self):
        assert Destination("a:1", "chat").irc_channel == "#chat"

    def test_channel_with_hash_not_doubled(self):
        assert Destination("a:1", "#chat").irc_channel == "#chat"

    def test_direct_message_marker(self):
        # Arrange
        dest = Destination("a:1", "-alice")

        # Assert
        assert dest.is_direct is True
        assert dest.recipient == "alice"
        assert dest.irc_channel == "#-alice"

    def test_plain_channel_has_no_recipient(self):
        dest = Destination("a:1", "chat")
        assert dest.is_direct is False
        assert dest.recipient is None

    def test_with_default_port(self):
        assert with_default_port("host") == "host:6667"
        assert with_default_port("host:1") == "host:1"
