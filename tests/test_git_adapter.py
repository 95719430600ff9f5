"""Tests for the git history provider against temporary repositories."""

from datetime import timedelta

import pytest

from git2cvs.git.adapter import GitRepository, HistoryReadError, parse_commit_object


class TestOpen:
    def test_not_a_repository(self, tmp_path):
        with pytest.raises(HistoryReadError):
            GitRepository.open(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(HistoryReadError):
            GitRepository.open(tmp_path / "nope")


class TestHistory:
    def test_linear_history_oldest_first(self, tmp_git_repo):
        c1 = tmp_git_repo.commit({"a.txt": b"hello"}, "first")
        c2 = tmp_git_repo.commit({"a.txt": b"hello world"}, "second")
        c3 = tmp_git_repo.commit({"a.txt": None, "b.bin": b"\x00\x01"}, "third")

        repo = GitRepository.open(tmp_git_repo.path)
        commits = list(repo.list_commits("main"))

        assert [c.oid for c in commits] == [c1, c2, c3]
        assert commits[0].parent is None
        assert commits[1].parent == c1
        assert set(commits[2].tree) == {"b.bin"}

    def test_first_parent_only(self, tmp_git_repo):
        base = tmp_git_repo.commit({"a.txt": b"a"}, "base")
        tmp_git_repo.git("checkout", "-q", "-b", "side")
        side = tmp_git_repo.commit({"side.txt": b"s"}, "side work")
        tmp_git_repo.git("checkout", "-q", "main")
        tmp_git_repo.commit({"main.txt": b"m"}, "main work")
        tmp_git_repo.git("merge", "-q", "--no-ff", "-m", "merge side", "side")
        merge = tmp_git_repo.git("rev-parse", "HEAD").strip()

        commits = list(GitRepository.open(tmp_git_repo.path).list_commits("main"))
        oids = [c.oid for c in commits]
        assert oids[0] == base
        assert oids[-1] == merge
        assert side not in oids
        # The merge commit carries the side branch's files as a squash.
        assert "side.txt" in commits[-1].tree

    def test_commit_metadata(self, tmp_git_repo):
        tmp_git_repo.commit({"a.txt": b"a"}, "subject line\n\nbody text")
        commit = next(iter(GitRepository.open(tmp_git_repo.path).list_commits("main")))
        assert commit.author == "Test <test@test.com>"
        assert commit.message == b"subject line\n\nbody text\n"
        assert commit.summary == "subject line"
        assert commit.timestamp.utcoffset() is not None

    def test_executable_mode(self, tmp_git_repo):
        script = tmp_git_repo.path / "run.sh"
        script.write_bytes(b"#!/bin/sh\n")
        script.chmod(0o755)
        tmp_git_repo.git("add", "run.sh")
        tmp_git_repo.git("commit", "-q", "-m", "script")
        commit = next(iter(GitRepository.open(tmp_git_repo.path).list_commits("main")))
        assert commit.tree["run.sh"].is_executable

    def test_read_blob(self, tmp_git_repo):
        content = b"binary\x00data\r\n"
        tmp_git_repo.commit({"d/x.bin": content}, "blob")
        repo = GitRepository.open(tmp_git_repo.path)
        commit = next(iter(repo.list_commits("main")))
        assert repo.read_blob(commit.tree["d/x.bin"].oid) == content

    def test_missing_branch(self, tmp_git_repo):
        tmp_git_repo.commit({"a.txt": b"a"}, "first")
        repo = GitRepository.open(tmp_git_repo.path)
        with pytest.raises(HistoryReadError, match="cannot find branch"):
            repo.list_commits("does-not-exist")

    def test_history_is_counted_before_snapshots_are_read(self, tmp_git_repo, monkeypatch):
        c1 = tmp_git_repo.commit({"a.txt": b"a"}, "first")
        c2 = tmp_git_repo.commit({"a.txt": b"b"}, "second")
        repo = GitRepository.open(tmp_git_repo.path)
        commits = repo.list_commits("main")
        assert len(commits) == 2
        assert commits.oids == [c1, c2]

        read = []
        original = repo.read_commit
        monkeypatch.setattr(repo, "read_commit", lambda oid: read.append(oid) or original(oid))
        commits = repo.list_commits("main")
        assert read == []
        snapshots = iter(commits)
        assert next(snapshots).oid == c1
        assert read == [c1]

    def test_verify_objects_rejects_missing_commit(self, tmp_git_repo):
        oid = tmp_git_repo.commit({"a.txt": b"a"}, "first")
        repo = GitRepository.open(tmp_git_repo.path)
        repo.verify_objects([oid])
        with pytest.raises(HistoryReadError, match="unreadable object"):
            repo.verify_objects([oid, "0" * 40])

    def test_missing_blob(self, tmp_git_repo):
        tmp_git_repo.commit({"a.txt": b"a"}, "first")
        repo = GitRepository.open(tmp_git_repo.path)
        with pytest.raises(HistoryReadError):
            repo.read_blob("0" * 40)


class TestCommitParsing:
    RAW = (
        b"tree 4b825dc642cb6eb9a060e54bf8d69288fbee4904\n"
        b"parent 1111111111111111111111111111111111111111\n"
        b"parent 2222222222222222222222222222222222222222\n"
        b"author Jane Doe <jane@example.com> 1600000000 -0130\n"
        b"committer John Roe <john@example.com> 1600000100 +0200\n"
        b"gpgsig -----BEGIN PGP SIGNATURE-----\n"
        b" abc\n"
        b" -----END PGP SIGNATURE-----\n"
        b"\n"
        b"Message\n"
    )

    def test_headers_and_message(self):
        headers, message = parse_commit_object("x", self.RAW)
        assert len(headers["parent"]) == 2
        assert headers["gpgsig"][0].endswith(b"-----END PGP SIGNATURE-----")
        assert message == b"Message\n"

    def test_missing_tree_rejected(self):
        with pytest.raises(HistoryReadError):
            parse_commit_object("x", b"author a <b> 1 +0000\n\nmsg\n")

    def test_signature_offsets(self):
        from git2cvs.git.adapter import _parse_signature

        ident, when = _parse_signature(b"Jane Doe <jane@example.com> 1600000000 -0130")
        assert ident == "Jane Doe <jane@example.com>"
        assert when.utcoffset() == -timedelta(hours=1, minutes=30)
        assert when.timestamp() == 1600000000
