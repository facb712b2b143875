import asyncio
from signal import SIGINT

import httpx
from pytest import fixture, mark, raises

from seek_streams import RangeStream
from seek_streams.async_utils import AsyncFetcher, SignalHaltError, window_reader

from .data import EXAMPLE_CONTENT, EXAMPLE_OTHER_URL, EXAMPLE_URL
from .share import MockRangeServer

TWO_URLS = [EXAMPLE_URL, EXAMPLE_OTHER_URL]

default_kwargs = dict(stream_cls=RangeStream, show_progress_bar=False)


class CallbackMutatedClass:
    values = []

    @classmethod
    def reset(cls):
        """
        Reset the class attribute where tests store the values they called back with
        """
        cls.values = []


@fixture(autouse=True)
def reset_callback_values():
    CallbackMutatedClass.reset()
    yield
    CallbackMutatedClass.reset()


@fixture
def server():
    return MockRangeServer()


async def url_callback_func(fetcher, range_stream, url):
    """
    Async function which puts the URL onto the storage class's list of values
    """
    CallbackMutatedClass.values.append(url)
    return range_stream.size


async def stream_callback_func(fetcher, range_stream, url):
    """
    Async function which puts the stream object onto the storage class's list of values
    """
    CallbackMutatedClass.values.append(range_stream)


async def sigint_callback_func(fetcher, range_stream, url):
    """
    Mimic the act of sending the signal interrupt by raising it in a callback
    """
    await url_callback_func(fetcher, range_stream, url)
    loop = asyncio.get_running_loop()
    fetcher.immediate_exit(signal_enum=SIGINT, loop=loop)


@mark.parametrize("cb", [None, url_callback_func])
@mark.parametrize("verbose", [True, False])
def test_fetcher(server, cb, verbose):
    """
    Fetch a list of 2 URLs asynchronously, with/out a callback, verbosely/quietly.
    """
    kwargs = dict(**default_kwargs, callback=cb, verbose=verbose)
    fetched = AsyncFetcher(urls=TWO_URLS, client=server.client(), **kwargs)
    results = fetched.make_calls()
    expected = None if cb is None else len(EXAMPLE_CONTENT)
    assert results == {url: expected for url in TWO_URLS}
    assert set(CallbackMutatedClass.values) == (set() if cb is None else set(TWO_URLS))
    assert fetched.errors == {}
    assert fetched.pending == []
    assert len(server.requests) == 2


def test_fetcher_empty_urls():
    with raises(ValueError, match="The list of URLs to fetch cannot be empty"):
        AsyncFetcher(urls=[], **default_kwargs)


def test_fetcher_repeated_urls(server):
    fetched = AsyncFetcher(
        urls=[EXAMPLE_URL, EXAMPLE_URL], client=server.client(), **default_kwargs
    )
    assert fetched.urls == [EXAMPLE_URL]
    fetched.make_calls()
    assert len(server.requests) == 1


@mark.parametrize(
    "offset,length,expected",
    [
        (0, 10, EXAMPLE_CONTENT[:10]),
        (500, 100, EXAMPLE_CONTENT[500:600]),
        (-10, None, EXAMPLE_CONTENT[-10:]),
        (995, 100, EXAMPLE_CONTENT[995:]),
    ],
)
def test_fetcher_reads_windows(server, offset, length, expected):
    fetched = AsyncFetcher(
        urls=TWO_URLS,
        client=server.client(),
        callback=window_reader(offset=offset, length=length),
        chunk_size=16,
        **default_kwargs,
    )
    assert fetched.make_calls() == {url: expected for url in TWO_URLS}


def test_fetcher_records_errors_and_retries(server):
    server.unavailable.add(EXAMPLE_OTHER_URL)
    fetched = AsyncFetcher(
        urls=TWO_URLS,
        client=server.client(),
        callback=window_reader(length=4),
        **default_kwargs,
    )
    assert fetched.make_calls() == {EXAMPLE_URL: EXAMPLE_CONTENT[:4]}
    assert list(fetched.errors) == [EXAMPLE_OTHER_URL]
    assert isinstance(fetched.errors[EXAMPLE_OTHER_URL], httpx.HTTPStatusError)
    assert fetched.pending == [EXAMPLE_OTHER_URL]
    server.unavailable.clear()
    n_requests = len(server.requests)
    results = fetched.make_calls()
    assert results[EXAMPLE_OTHER_URL] == EXAMPLE_CONTENT[:4]
    assert fetched.errors == {}
    assert len(server.requests) == n_requests + 1  # only the failed URL again
    fetched.make_calls()  # nothing left to fetch
    assert len(server.requests) == n_requests + 1


def test_fetcher_records_protocol_errors(server):
    server.accept_ranges = False
    fetched = AsyncFetcher(urls=TWO_URLS, client=server.client(), **default_kwargs)
    assert fetched.make_calls() == {}
    assert set(fetched.errors) == set(TWO_URLS)
    assert all("range requests unsupported" in str(e) for e in fetched.errors.values())


def test_fetcher_callback_error_propagates(server):
    async def broken_callback(fetcher, range_stream, url):
        raise KeyError(url)

    fetched = AsyncFetcher(
        urls=[EXAMPLE_URL],
        client=server.client(),
        callback=broken_callback,
        **default_kwargs,
    )
    with raises(KeyError):
        fetched.make_calls()


def test_fetcher_progress_bar(server):
    fetched = AsyncFetcher(
        stream_cls=RangeStream, urls=TWO_URLS, client=server.client()
    )
    assert fetched.show_progress_bar
    fetched.make_calls()
    assert fetched.pbar.n == 2


def test_fetcher_closes_streams(server):
    fetched = AsyncFetcher(
        urls=TWO_URLS,
        client=server.client(),
        callback=stream_callback_func,
        **default_kwargs,
    )
    fetched.make_calls()
    streams = CallbackMutatedClass.values
    assert {s.url for s in streams} == set(TWO_URLS)
    assert not any(s.is_connected for s in streams)
    assert not fetched.client.is_closed  # a client passed in is left open


def test_fetcher_closed_client(server):
    client = server.client()
    asyncio.run(client.aclose())
    fetched = AsyncFetcher(urls=TWO_URLS, client=client, **default_kwargs)
    with raises(ValueError, match="Cannot use a closed client"):
        fetched.make_calls()


def test_fetcher_sync_client(server):
    fetched = AsyncFetcher(urls=TWO_URLS, **default_kwargs)
    with raises(TypeError, match="is not async"):
        asyncio.run(fetched.fetch_with(client=object(), urls=TWO_URLS))


def test_fetcher_sigint(server):
    """
    Check that the loop is stopped at the first callback when ``immediate_exit`` is
    called (as it would be by the SIGINT handler).
    """
    kwargs = dict(**default_kwargs, callback=sigint_callback_func)
    fetched = AsyncFetcher(urls=TWO_URLS, client=server.client(), **kwargs)
    assert fetched.make_calls() == {}
    assert len(CallbackMutatedClass.values) == 1
    assert set(CallbackMutatedClass.values) < set(TWO_URLS)


def test_signal_halt_error():
    error = SignalHaltError(signal_enum=SIGINT)
    assert isinstance(error, SystemExit)
    assert error.exit_code == SIGINT.value
    assert repr(error) == "Exited due to SIGINT"


@mark.parametrize("cb", [None, stream_callback_func])
def test_fetcher_classmethod(server, cb):
    """
    Fetch a list of 2 URLs asynchronously, with/out a callback, using the
    classmethod constructor of the stream class.
    """
    fetched = RangeStream.make_async_fetcher(
        urls=TWO_URLS,
        client=server.client(),
        callback=cb,
        show_progress_bar=False,
        task_limit=1,
    )
    assert fetched.stream_cls is RangeStream
    assert fetched.task_limit == 1
    fetched.make_calls()
    expected_values = set() if cb is None else {RangeStream}
    assert set(map(type, CallbackMutatedClass.values)) == expected_values
