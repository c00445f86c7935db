"""Unit tests for the nix prefetch wrappers and nix32 decoding."""

import base64
import hashlib
import json
import subprocess

import pytest

from lon import nix
from lon.core.exceptions import TransportError

SRI = "sha256-" + base64.b64encode(hashlib.sha256(b"source").digest()).decode("ascii")


def nix32_encode(digest: bytes) -> str:
    """Encode bytes the way Nix prints sha256 hashes."""
    length = (len(digest) * 8 - 1) // 5 + 1
    chars = []
    for n in range(length - 1, -1, -1):
        bit = n * 5
        i, j = divmod(bit, 8)
        c = digest[i] >> j
        if i + 1 < len(digest):
            c |= digest[i + 1] << (8 - j)
        chars.append(nix.NIX32_ALPHABET[c & 0x1F])
    return "".join(chars)


class FakeRun:
    def __init__(self, stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.cmds: list[list[str]] = []

    def __call__(self, cmd, **kwargs) -> subprocess.CompletedProcess:
        self.cmds.append(list(cmd))
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)


class TestNix32:
    def test_zero_digest(self) -> None:
        """全て0のダイジェストが0バイト列のSRIに変換されること."""
        assert nix.nix32_to_sri("0" * 52) == "sha256-" + "A" * 43 + "="

    @pytest.mark.parametrize("data", [b"", b"lon", b"nixpkgs-unstable"])
    def test_matches_nix_encoding(self, data: bytes) -> None:
        digest = hashlib.sha256(data).digest()
        expected = "sha256-" + base64.b64encode(digest).decode("ascii")

        assert nix.nix32_to_sri(nix32_encode(digest)) == expected

    def test_invalid_length(self) -> None:
        with pytest.raises(ValueError, match="length"):
            nix.nix32_to_sri("0" * 51)

    def test_invalid_character(self) -> None:
        """nix32に含まれない文字(e, o, u, t)は拒否されること."""
        with pytest.raises(ValueError, match="Invalid nix32 character"):
            nix.nix32_to_sri("e" + "0" * 51)

    def test_overflow(self) -> None:
        # 52 * 5 = 260 bits, the top four bits of the first character must be zero
        with pytest.raises(ValueError, match="Invalid nix32 sha256 digest"):
            nix.nix32_to_sri("z" + "0" * 51)


class TestPrefetch:
    def test_prefetch_git(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """nix-prefetch-gitのJSON出力からhashを読み取ること."""
        fake = FakeRun(json.dumps({"url": "x", "rev": "abc", "hash": SRI}))
        monkeypatch.setattr(subprocess, "run", fake)

        assert nix.prefetch_git("https://example.org/x.git", "abc", submodules=True) == SRI
        assert fake.cmds == [
            ["nix-prefetch-git", "--fetch-submodules", "--name", "source", "https://example.org/x.git", "abc"]
        ]

    def test_prefetch_git_without_submodules(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeRun(json.dumps({"hash": SRI}))
        monkeypatch.setattr(subprocess, "run", fake)

        nix.prefetch_git("https://example.org/x.git", "abc", submodules=False)

        assert "--fetch-submodules" not in fake.cmds[0]

    def test_prefetch_git_bad_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(subprocess, "run", FakeRun("not json"))

        with pytest.raises(TransportError, match="deserialize nix-prefetch-git"):
            nix.prefetch_git("https://example.org/x.git", "abc", submodules=False)

    @pytest.mark.parametrize("value", ["sha256-abc=", "sha1-" + "A" * 27 + "=", None])
    def test_prefetch_git_invalid_hash(self, monkeypatch: pytest.MonkeyPatch, value: str | None) -> None:
        """nix-prefetch-gitが不正なhashを返した場合はTransportErrorになること."""
        monkeypatch.setattr(subprocess, "run", FakeRun(json.dumps({"hash": value})))

        with pytest.raises(TransportError, match="nix-prefetch-git returned an invalid sha256 hash"):
            nix.prefetch_git("https://example.org/x.git", "abc", submodules=False)

    def test_prefetch_tarball_converts_nix32(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """nix-prefetch-urlのnix32出力がSRIに変換されること."""
        fake = FakeRun("0" * 52 + "\n")
        monkeypatch.setattr(subprocess, "run", fake)

        assert nix.prefetch_tarball("https://example.org/x.tar.gz") == "sha256-" + "A" * 43 + "="
        assert fake.cmds == [
            ["nix-prefetch-url", "--unpack", "--name", "source", "--type", "sha256", "https://example.org/x.tar.gz"]
        ]

    def test_prefetch_tarball_passes_sri_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(subprocess, "run", FakeRun(SRI + "\n"))

        assert nix.prefetch_tarball("https://example.org/x.tar.gz") == SRI

    def test_prefetch_tarball_invalid_sri(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(subprocess, "run", FakeRun("sha256-abc=\n"))

        with pytest.raises(TransportError, match="nix-prefetch-url returned an invalid sha256 hash"):
            nix.prefetch_tarball("https://example.org/x.tar.gz")

    def test_prefetch_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """コマンド失敗時はstderr付きのTransportErrorになること."""
        monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr="error: unable to download"))

        with pytest.raises(TransportError, match="unable to download"):
            nix.prefetch_tarball("https://example.org/x.tar.gz")

    def test_tool_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing(*args, **kwargs):
            raise FileNotFoundError("nix-prefetch-url")

        monkeypatch.setattr(subprocess, "run", missing)

        with pytest.raises(TransportError, match="not on PATH"):
            nix.prefetch_tarball("https://example.org/x.tar.gz")
