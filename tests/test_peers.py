"""
Tests for peer normalization, pool ordering and /peers discovery.
"""

import unittest
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from backfill.constants import BUILTIN_PEERS, KNOWN_CHUNK_PEERS
from backfill.models import PeerEndpoint
from backfill.peers import PeerPool, dedupe_peers, discover_peers, normalize_peer
from tests.http_fakes import FakeResponse, FakeSession


class TestNormalizePeer(unittest.TestCase):
    """Test address normalization."""

    def test_bare_host_port_gets_http_scheme(self):
        self.assertEqual(normalize_peer('38.29.227.39:1984'), 'http://38.29.227.39:1984')

    def test_https_and_trailing_slash(self):
        self.assertEqual(normalize_peer('HTTPS://Arweave.NET/'), 'https://arweave.net')

    def test_whitespace_is_stripped(self):
        self.assertEqual(normalize_peer('  1.2.3.4:1984  '), 'http://1.2.3.4:1984')

    def test_ipv6_host_is_bracketed(self):
        self.assertEqual(normalize_peer('http://[::1]:1984'), 'http://[::1]:1984')

    def test_invalid_inputs(self):
        for value in (None, '', '   ', 42, 'http://', 'host:notaport'):
            with self.subTest(value=value):
                self.assertIsNone(normalize_peer(value))

    def test_dedupe_keeps_first_seen_order(self):
        peers = ['b:1', 'a:1', 'http://b:1/', 'a:1', '']
        self.assertEqual(dedupe_peers(peers), ['http://b:1', 'http://a:1'])


class TestPeerPool(unittest.TestCase):
    """Test pool construction without discovery."""

    def test_order_is_builtin_then_extra_then_known(self):
        pool = PeerPool.build(extra_peers=['9.9.9.9:1984'])
        urls = pool.urls

        self.assertEqual(urls[:len(BUILTIN_PEERS)], [normalize_peer(p) for p in BUILTIN_PEERS])
        self.assertEqual(urls[len(BUILTIN_PEERS)], 'http://9.9.9.9:1984')
        self.assertEqual(len(urls), len(set(urls)))
        for peer in KNOWN_CHUNK_PEERS:
            self.assertIn(normalize_peer(peer), urls)

    def test_max_peers_truncates(self):
        pool = PeerPool.build(max_peers=3)
        self.assertEqual(len(pool), 3)
        self.assertEqual(pool.urls, [normalize_peer(p) for p in BUILTIN_PEERS[:3]])

    def test_build_is_deterministic(self):
        self.assertEqual(PeerPool.build(extra_peers=['x:1']).urls, PeerPool.build(extra_peers=['x:1']).urls)

    def test_iterates_endpoints_with_positions(self):
        pool = PeerPool(['a:1', 'b:2'])
        endpoints = list(pool)
        self.assertEqual(endpoints, [PeerEndpoint('http://a:1', 0), PeerEndpoint('http://b:2', 1)])
        self.assertTrue(pool)
        self.assertFalse(PeerPool([]))

    def test_discovery_requires_session(self):
        with self.assertRaises(ValueError):
            PeerPool.build(discover=True)


class TestDiscoverPeers(unittest.TestCase):
    """Test breadth-first /peers crawling."""

    def test_breadth_first_order(self):
        session = FakeSession({
            ('GET', 'http://a:1/peers'): FakeResponse(200, ['b:1', 'c:1']),
            ('GET', 'http://b:1/peers'): FakeResponse(200, ['d:1', 'a:1']),
            ('GET', 'http://c:1/peers'): FakeResponse(200, ['d:1']),
            ('GET', 'http://d:1/peers'): FakeResponse(200, []),
        })

        result = discover_peers(['a:1'], session, max_peers=10, timeout=1)

        self.assertEqual(result, ['http://a:1', 'http://b:1', 'http://c:1', 'http://d:1'])
        self.assertEqual(session.urls_called().count('http://d:1/peers'), 1)

    def test_failed_peer_is_still_included(self):
        session = FakeSession({
            ('GET', 'http://a:1/peers'): FakeResponse(500),
            ('GET', 'http://b:1/peers'): FakeResponse(200, {'not': 'a list'}),
        })

        result = discover_peers(['a:1', 'b:1'], session, max_peers=10, timeout=1)

        self.assertEqual(result, ['http://a:1', 'http://b:1'])

    def test_stops_at_max_peers(self):
        session = FakeSession({
            ('GET', 'http://a:1/peers'): FakeResponse(200, [f'n{i}:1' for i in range(20)]),
        })

        result = discover_peers(['a:1'], session, max_peers=5, timeout=1)

        self.assertEqual(len(result), 5)
        self.assertEqual(result[0], 'http://a:1')

    def test_pool_build_with_discovery_keeps_seed_order_first(self):
        session = FakeSession()
        session.add('GET', 'https://arweave.net/peers', FakeResponse(200, ['7.7.7.7:1984']))

        pool = PeerPool.build(max_peers=500, discover=True, session=session, timeout=1)

        self.assertEqual(pool.urls[0], 'https://arweave.net')
        self.assertIn('http://7.7.7.7:1984', pool.urls)
        self.assertGreater(pool.urls.index('http://7.7.7.7:1984'), len(BUILTIN_PEERS))


if __name__ == '__main__':
    unittest.main()
