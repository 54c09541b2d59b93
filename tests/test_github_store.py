import base64

import pytest

from conftest import FakeContentsApi, FakeTransport
from dogblog.errors import RequestTimeout, StoreWriteFailed, TransportError
from dogblog import github_store
from dogblog.github_store import GitHubContentStore
from dogblog.transport import HttpResponse


def make_store(route, **kwargs):
    send = FakeTransport(route)
    return GitHubContentStore("owner/dog-blog", "gh-token", send=send, **kwargs), send


def test_upload_twice_creates_then_updates():
    api = FakeContentsApi()
    store, send = make_store(api)

    first = store.upload("content/posts/a.md", b"hello", "Add post: A")
    second = store.upload("content/posts/a.md", b"hello", "Add post: A")

    assert first.revision_token is None
    assert second.revision_token == "sha1"
    puts = [call["payload"] for call in send.calls if call["method"] == "PUT"]
    assert "sha" not in puts[0]
    assert puts[1]["sha"] == "sha1"
    assert list(api.files) == ["content/posts/a.md"]
    assert api.files["content/posts/a.md"]["sha"] == "sha2"


def test_upload_encodes_content_and_headers():
    api = FakeContentsApi()
    store, send = make_store(api, timeout=7.5)

    remote = store.upload("static/images/dog.jpg", b"\xff\xd8", "Add image: dog")

    put = send.calls[-1]
    assert put["url"] == "https://api.github.com/repos/owner/dog-blog/contents/static/images/dog.jpg"
    assert put["payload"] == {"message": "Add image: dog", "content": base64.b64encode(b"\xff\xd8").decode("ascii")}
    assert put["headers"]["Authorization"] == "Bearer gh-token"
    assert put["timeout"] == 7.5
    assert remote.content_base64 == "/9g="


def test_lookup_transport_error_is_treated_as_new_file(capsys):
    def route(method, url, payload):
        if method == "GET":
            return TransportError("connection reset")
        return HttpResponse(201, "{}")

    store, send = make_store(route)
    remote = store.upload("content/posts/b.md", b"x", "Add post: B")

    assert remote.revision_token is None
    assert "sha" not in send.calls[-1]["payload"]
    assert "assuming new file" in capsys.readouterr().out


def test_lookup_timeout_is_treated_as_new_file():
    store, _ = make_store(lambda method, url, payload: RequestTimeout("github"))
    assert store.lookup("content/posts/c.md") is None


def test_write_failure_raises_with_path_and_body():
    def route(method, url, payload):
        if method == "GET":
            return HttpResponse(404, "")
        return HttpResponse(409, '{"message": "conflict"}')

    store, _ = make_store(route)
    with pytest.raises(StoreWriteFailed) as excinfo:
        store.upload("content/posts/d.md", b"x", "Add post: D")

    assert excinfo.value.path == "content/posts/d.md"
    assert "conflict" in excinfo.value.status_body


def test_write_timeout_propagates():
    def route(method, url, payload):
        if method == "GET":
            return HttpResponse(404, "")
        return RequestTimeout("github", "write timed out")

    store, _ = make_store(route)
    with pytest.raises(RequestTimeout):
        store.upload("content/posts/e.md", b"x", "Add post: E")


def test_branch_is_used_for_lookup_and_write():
    api = FakeContentsApi()
    store, send = make_store(api, branch="drafts")

    store.upload("content/posts/f.md", b"x", "Add post: F")

    assert send.calls[0]["url"].endswith("/contents/content/posts/f.md?ref=drafts")
    assert send.calls[1]["payload"]["branch"] == "drafts"


def test_path_lock_is_held_during_upload_and_released_after():
    held = []

    def route(method, url, payload):
        held.append(list(github_store._PATH_LOCKS))
        if method == "GET":
            return HttpResponse(404, "")
        return HttpResponse(201, "{}")

    store, _ = make_store(route)
    store.upload("content/posts/e.md", b"x", "Add post: E")

    assert held == [["owner/dog-blog::content/posts/e.md"]] * 2
    assert github_store._PATH_LOCKS == {}


def test_path_lock_is_released_after_failed_write():
    def route(method, url, payload):
        if method == "GET":
            return HttpResponse(404, "")
        return HttpResponse(500, "boom")

    store, _ = make_store(route)
    for index in range(3):
        with pytest.raises(StoreWriteFailed):
            store.upload(f"content/posts/f{index}.md", b"x", "Add post: F")

    assert github_store._PATH_LOCKS == {}
