import unittest

from crawldb.errors import InvalidUrlError
from crawldb.keys import reverse_host, reverse_url, unreverse_url


class ReverseUrlTests(unittest.TestCase):
    def test_reverse_url(self) -> None:
        self.assertEqual("de.l3s.www:http/", reverse_url("http://www.l3s.de/"))
        self.assertEqual("co.t:http/ZNyOoEwAwN", reverse_url("http://t.co/ZNyOoEwAwN"))

    def test_port_query_and_fragment(self) -> None:
        self.assertEqual(
            "com.foo.bar:https:8983/to/index.html?a=b",
            reverse_url("https://bar.foo.com:8983/to/index.html?a=b#frag"),
        )

    def test_without_path(self) -> None:
        self.assertEqual("com.example:http", reverse_url("http://example.com"))

    def test_query_without_path_gets_slash(self) -> None:
        self.assertEqual("com.a:http/?x", reverse_url("http://a.com?x"))
        self.assertEqual("com.a:http:8080/?x", reverse_url("http://a.com:8080?x"))

    def test_empty_query_kept(self) -> None:
        self.assertEqual("com.a:http/x?", reverse_url("http://a.com/x?"))
        self.assertEqual("com.a:http/x?", reverse_url("http://a.com/x?#frag"))
        self.assertNotEqual(reverse_url("http://a.com/x"), reverse_url("http://a.com/x?"))

    def test_userinfo_dropped_and_scheme_lowercased(self) -> None:
        self.assertEqual("com.example:http/x", reverse_url("HTTP://user:pw@example.com/x"))

    def test_deterministic(self) -> None:
        url = "http://www.l3s.de/research?id=7"
        self.assertEqual(reverse_url(url), reverse_url(url))

    def test_same_host_sorts_together(self) -> None:
        keys = sorted(reverse_url(u) for u in [
            "http://www.l3s.de/b",
            "http://example.com/",
            "http://www.l3s.de/a",
            "http://blog.l3s.de/",
        ])
        self.assertEqual(
            ["com.example:http/", "de.l3s.blog:http/", "de.l3s.www:http/a", "de.l3s.www:http/b"],
            keys,
        )

    def test_distinct_urls_distinct_keys(self) -> None:
        urls = [
            "http://example.com/",
            "https://example.com/",
            "http://example.com:8080/",
            "http://example.com/?q=1",
            "http://example.com/a",
            "http://example.com/a?",
        ]
        self.assertEqual(len(urls), len({reverse_url(u) for u in urls}))

    def test_invalid_urls(self) -> None:
        for url in ["", "   ", "no scheme", "/relative", "http://", "http://host:port/", "http://host:99999/",
                    "http://a.com:\u00b2/", "http://a.com:\u0661\u0662/"]:
            with self.subTest(url=url):
                with self.assertRaises(InvalidUrlError):
                    reverse_url(url)

    def test_invalid_url_is_value_error(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            reverse_url("nope")
        self.assertEqual("nope", ctx.exception.url)


class UnreverseUrlTests(unittest.TestCase):
    def test_unreverse(self) -> None:
        self.assertEqual("http://www.l3s.de/", unreverse_url("de.l3s.www:http/"))
        self.assertEqual(
            "https://bar.foo.com:8983/to?a=b",
            unreverse_url("com.foo.bar:https:8983/to?a=b"),
        )

    def test_unreverse_inverts_reverse(self) -> None:
        for url in ["http://t.co/ZNyOoEwAwN", "http://example.com", "http://[::1]:8080/x?y=1"]:
            with self.subTest(url=url):
                self.assertEqual(url, unreverse_url(reverse_url(url)))

    def test_unreverse_rejects_garbage(self) -> None:
        with self.assertRaises(InvalidUrlError):
            unreverse_url("no-colon-here/")

    def test_reverse_host(self) -> None:
        self.assertEqual("com.example.www", reverse_host("www.example.com"))
        self.assertEqual("localhost", reverse_host("localhost"))


if __name__ == "__main__":
    unittest.main()
