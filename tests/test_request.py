"""Test building an InboundRequest from the CGI environment."""

import pytest

from p2irc.request import InboundRequest, is_valid_nick, split_path


class TestSplitPath:
    @pytest.mark.parametrize(
        ("uri", "expected"),
        [
            ("/", ()),
            ("", ()),
            ("/linux", ("linux",)),
            ("/irc.libera.chat:6697/linux/", ("irc.libera.chat:6697", "linux")),
            ("//a///b", ("a", "b")),
            ("/linux?foo=bar/baz", ("linux",)),
            ("/irc.example.org/%23test", ("irc.example.org", "#test")),
        ],
    )
    def test_segments(self, uri, expected):
        assert split_path(uri) == expected


class TestNickValidation:
    @pytest.mark.parametrize("nick", ["p2irc", "ci-bot", "[bot]", "a" * 30, "_x^"])
    def test_valid(self, nick):
        assert is_valid_nick(nick)

    @pytest.mark.parametrize("nick", ["", "1bot", "bad nick", "x\r\nQUIT", "a" * 31, "-dash"])
    def test_invalid(self, nick):
        assert not is_valid_nick(nick)


class TestFromEnviron:
    def test_post_request(self):
        # Arrange
        environ = {
            "REQUEST_METHOD": "post",
            "REQUEST_URI": "/linux",
            "REMOTE_ADDR": "192.0.2.7",
            "CONTENT_TYPE": "application/x-www-form-urlencoded",
        }

        # Act
        request = InboundRequest.from_environ(environ, b"hello")

        # Assert
        assert request.method == "POST"
        assert request.path == ("linux",)
        assert request.remote_addr == "192.0.2.7"
        assert request.nick is None
        assert request.is_get is False
        assert request.is_webhook is False
        assert request.text() == "hello"

    def test_path_info_fallback(self):
        request = InboundRequest.from_environ({"REQUEST_METHOD": "GET", "PATH_INFO": "/a/b"})

        assert request.path == ("a", "b")
        assert request.is_get is True

    def test_empty_environ(self):
        request = InboundRequest.from_environ({})

        assert request.method == ""
        assert request.path == ()
        assert request.remote_addr == ""
        assert request.is_get is False

    def test_json_content_type_is_webhook(self):
        request = InboundRequest.from_environ(
            {"REQUEST_METHOD": "POST", "CONTENT_TYPE": "Application/JSON; charset=utf-8"}
        )

        assert request.is_webhook is True

    def test_nick_override(self):
        request = InboundRequest.from_environ({"HTTP_X_IRC_NICK": " ci-bot "})

        assert request.nick == "ci-bot"

    def test_invalid_nick_ignored(self):
        request = InboundRequest.from_environ({"HTTP_X_IRC_NICK": "evil\r\nQUIT"})

        assert request.nick is None

    def test_invalid_utf8_body_decoded_with_replacement(self):
        request = InboundRequest(method="POST", path=(), body=b"caf\xe9")

        assert request.text() == "caf�"
