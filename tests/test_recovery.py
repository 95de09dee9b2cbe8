"""
Tests for offset resolution, chunk fetching and stream assembly.

Peers are served from an in-process route table; no network access.
"""

import unittest
import tempfile
import os
import sys

import requests

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from backfill.artifact_store import ArtifactStore
from backfill.errors import NetworkFailure
from backfill.models import b64url_encode
from backfill.peers import PeerPool
from backfill.progress import CollectingWriter, ProgressLog
from backfill.recovery import (
    ChunkFetcher,
    OffsetResolver,
    StreamAssembler,
    parse_chunk_response,
    parse_offset_response,
)
from tests.http_fakes import FakeResponse, FakeSession

PEER_A = 'http://a:1984'
PEER_B = 'http://b:1984'
PEER_C = 'http://c:1984'


def chunk_body(data: bytes, end_offset: int = None) -> dict:
    body = {'chunk': b64url_encode(data), 'data_path': '', 'data_root': ''}
    if end_offset is not None:
        body['offset'] = str(end_offset)
    return body


def serve_transaction(session: FakeSession, peer: str, tx_id: str, data: bytes, start: int, sizes):
    """Route the offset lookup and each chunk start of ``data`` on ``peer``."""
    end = start + len(data) - 1
    session.add('GET', f'{peer}/tx/{tx_id}/offset',
                FakeResponse(200, {'offset': str(end), 'size': str(len(data))}))
    pos = 0
    for size in sizes:
        piece = data[pos:pos + size]
        session.add('GET', f'{peer}/chunk/{start + pos}',
                    FakeResponse(200, chunk_body(piece, start + pos + len(piece) - 1)))
        pos += size


class TestParseOffsetResponse(unittest.TestCase):
    """Test offset body parsing."""

    def test_decimal_strings(self):
        offset_range = parse_offset_response({'offset': '999', 'size': '1000'})
        self.assertEqual(offset_range.end_offset, 999)
        self.assertEqual(offset_range.start_offset, 0)

    def test_values_beyond_float_precision_are_exact(self):
        offset_range = parse_offset_response({'offset': '123456789012345678901', 'size': '262144'})
        self.assertEqual(offset_range.end_offset, 123456789012345678901)
        self.assertEqual(offset_range.start_offset, 123456789012345678901 - 262144 + 1)

    def test_alternate_field_names(self):
        offset_range = parse_offset_response({'endOffset': 50, 'data_size': 10})
        self.assertEqual((offset_range.end_offset, offset_range.size), (50, 10))

    def test_malformed_bodies(self):
        for body in ([], {'offset': '10'}, {'offset': 'x', 'size': '1'},
                     {'offset': '10', 'size': '0'}, {'offset': 1.5, 'size': 1},
                     {'offset': '5', 'size': '100'}):
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    parse_offset_response(body)


class TestOffsetResolver(unittest.TestCase):
    """Test peer fallback for offset lookups."""

    def test_first_valid_answer_wins(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/tx/abc/offset'): FakeResponse(404),
            ('GET', f'{PEER_B}/tx/abc/offset'): FakeResponse(200, {'offset': '999', 'size': '1000'}),
            ('GET', f'{PEER_C}/tx/abc/offset'): FakeResponse(200, {'offset': '5', 'size': '1'}),
        })

        offset_range = OffsetResolver(session, timeout=1).resolve_offset('abc', [PEER_A, PEER_B, PEER_C])

        self.assertEqual(offset_range.start_offset, 0)
        self.assertNotIn(f'{PEER_C}/tx/abc/offset', session.urls_called())

    def test_range_starting_before_zero_falls_through(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/tx/abc/offset'): FakeResponse(200, {'offset': '5', 'size': '100'}),
            ('GET', f'{PEER_B}/tx/abc/offset'): FakeResponse(200, {'offset': '1099', 'size': '100'}),
        })

        offset_range = OffsetResolver(session, timeout=1).resolve_offset('abc', [PEER_A, PEER_B])

        self.assertEqual((offset_range.start_offset, offset_range.end_offset), (1000, 1099))
        self.assertEqual(session.urls_called(), [f'{PEER_A}/tx/abc/offset', f'{PEER_B}/tx/abc/offset'])

    def test_all_peers_fail_reports_every_cause(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/tx/abc/offset'): FakeResponse(500),
            ('GET', f'{PEER_B}/tx/abc/offset'): FakeResponse(200, {'unexpected': True}),
        })

        with self.assertRaises(NetworkFailure) as ctx:
            OffsetResolver(session, timeout=1).resolve_offset('abc', [PEER_A, PEER_B, PEER_C])

        self.assertEqual([peer for peer, _ in ctx.exception.causes], [PEER_A, PEER_B, PEER_C])
        self.assertIsInstance(ctx.exception.causes[2][1], requests.exceptions.ConnectionError)
        self.assertIn('3 errors', str(ctx.exception))

    def test_configurable_lookup_path(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/offsets/abc'): FakeResponse(200, {'offset': '9', 'size': '10'}),
        })

        resolver = OffsetResolver(session, timeout=1, lookup_path='/offsets/{content_id}')

        self.assertEqual(resolver.resolve_offset('abc', [PEER_A]).size, 10)

    def test_accepts_peer_pool(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/tx/abc/offset'): FakeResponse(200, {'offset': '9', 'size': '10'}),
        })

        offset_range = OffsetResolver(session, timeout=1).resolve_offset('abc', PeerPool(['a:1984']))

        self.assertEqual(offset_range.end_offset, 9)


class TestChunkFetcher(unittest.TestCase):
    """Test chunk parsing and per-peer fallback."""

    def test_offset_field_positions_the_chunk(self):
        window = parse_chunk_response(chunk_body(b'x' * 100, 1099), 1050, PEER_A)
        self.assertEqual((window.absolute_start, window.absolute_end), (1000, 1099))
        self.assertEqual(window.peer, PEER_A)

    def test_missing_offset_assumes_chunk_starts_at_position(self):
        window = parse_chunk_response(chunk_body(b'x' * 10), 500)
        self.assertEqual((window.absolute_start, window.absolute_end), (500, 509))

    def test_rejects_malformed_or_misplaced_chunks(self):
        for body in ({}, {'chunk': ''}, {'chunk': 5}, chunk_body(b'x' * 10, 5000)):
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    parse_chunk_response(body, 100)

    def test_falls_back_to_next_peer(self):
        session = FakeSession({
            ('GET', f'{PEER_A}/chunk/100'): requests.exceptions.Timeout('slow'),
            ('GET', f'{PEER_B}/chunk/100'): FakeResponse(200, chunk_body(b'y' * 10, 9999)),
            ('GET', f'{PEER_C}/chunk/100'): FakeResponse(200, chunk_body(b'z' * 10, 109)),
        })

        window = ChunkFetcher(session, timeout=1).fetch_chunk([PEER_A, PEER_B, PEER_C], 100)

        self.assertEqual(window.data, b'z' * 10)
        self.assertEqual(window.peer, PEER_C)

    def test_all_peers_fail(self):
        session = FakeSession()

        with self.assertRaises(NetworkFailure) as ctx:
            ChunkFetcher(session, timeout=1).fetch_chunk([PEER_A, PEER_B], 100)

        self.assertEqual(len(ctx.exception.causes), 2)
        self.assertIn('chunk @100', str(ctx.exception))


class TestStreamAssembler(unittest.TestCase):
    """Test ordered assembly across chunk boundaries."""

    def setUp(self):
        self.session = FakeSession()
        self.writer = CollectingWriter()
        progress = ProgressLog(writer=self.writer)
        self.assembler = StreamAssembler(
            OffsetResolver(self.session, timeout=1, progress=progress),
            ChunkFetcher(self.session, timeout=1, progress=progress),
            progress=progress,
        )

    def test_three_chunk_transaction(self):
        data = bytes(i % 251 for i in range(700000))
        serve_transaction(self.session, PEER_A, 'tx1', data, 5000000, [262144, 262144, 175712])

        payload = self.assembler.assemble('tx1', [PEER_A])

        self.assertEqual(payload.data, data)
        self.assertEqual(payload.size, 700000)
        self.assertEqual(payload.windows_used, 3)
        self.assertEqual(payload.offset_range.start_offset, 5000000)
        self.assertEqual(
            self.session.urls_called(),
            [f'{PEER_A}/tx/tx1/offset', f'{PEER_A}/chunk/5000000',
             f'{PEER_A}/chunk/5262144', f'{PEER_A}/chunk/5524288'],
        )
        self.assertIn('Fetched chunk 3 (size: 175712 bytes, total: 700000/700000)', self.writer.lines)

    def test_transaction_starting_at_zero(self):
        data = b'q' * 1000
        serve_transaction(self.session, PEER_A, 'tx1', data, 0, [1000])

        payload = self.assembler.assemble('tx1', [PEER_A])

        self.assertEqual(payload.offset_range.start_offset, 0)
        self.assertEqual(payload.data, data)

    def test_falls_back_when_first_peers_fail(self):
        data = os.urandom(3000)
        self.session.add('GET', f'{PEER_A}/tx/tx1/offset', FakeResponse(502))
        self.session.add('GET', f'{PEER_B}/tx/tx1/offset', requests.exceptions.ConnectionError('down'))
        serve_transaction(self.session, PEER_C, 'tx1', data, 10, [1000, 1000, 1000])

        payload = self.assembler.assemble('tx1', [PEER_A, PEER_B, PEER_C])

        self.assertEqual(payload.data, data)
        # Every chunk request walks the pool from the top again
        self.assertEqual(self.session.urls_called().count(f'{PEER_A}/chunk/1010'), 1)

    def test_overlapping_chunk_is_trimmed(self):
        data = bytes(range(100))
        self.session.add('GET', f'{PEER_A}/tx/tx1/offset', FakeResponse(200, {'offset': '99', 'size': '100'}))
        self.session.add('GET', f'{PEER_A}/chunk/0', FakeResponse(200, chunk_body(data[:60], 59)))
        self.session.add('GET', f'{PEER_A}/chunk/60', FakeResponse(200, chunk_body(data[40:], 99)))

        payload = self.assembler.assemble('tx1', [PEER_A])

        self.assertEqual(payload.data, data)

    def test_chunk_past_the_end_is_truncated(self):
        data = b'a' * 100
        self.session.add('GET', f'{PEER_A}/tx/tx1/offset', FakeResponse(200, {'offset': '99', 'size': '100'}))
        self.session.add('GET', f'{PEER_A}/chunk/0', FakeResponse(200, chunk_body(data + b'b' * 28, 127)))

        payload = self.assembler.assemble('tx1', [PEER_A])

        self.assertEqual(payload.data, data)

    def test_missing_chunk_raises_network_failure(self):
        data = b'z' * 2000
        serve_transaction(self.session, PEER_A, 'tx1', data, 0, [1000])

        with self.assertRaises(NetworkFailure):
            self.assembler.assemble('tx1', [PEER_A])

    def test_assemble_to_file_writes_artifact(self):
        data = b'payload' * 100
        serve_transaction(self.session, PEER_A, 'tx1', data, 0, [len(data)])

        with tempfile.TemporaryDirectory() as temp_dir:
            payload = self.assembler.assemble_to_file('tx1', [PEER_A], ArtifactStore(temp_dir))

            self.assertEqual(payload.path, os.path.join(temp_dir, 'tx1.bin'))
            with open(payload.path, 'rb') as f:
                self.assertEqual(f.read(), data)

    def test_failed_assembly_writes_nothing(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(NetworkFailure):
                self.assembler.assemble_to_file('tx1', [PEER_A], ArtifactStore(temp_dir))
            self.assertEqual(os.listdir(temp_dir), [])


if __name__ == '__main__':
    unittest.main()
