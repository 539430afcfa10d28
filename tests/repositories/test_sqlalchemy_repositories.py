# tests/repositories/test_sqlalchemy_repositories.py
import pytest

from deployer.repositories.sqlalchemy import (
    SqlalchemyDiskRepository,
    SqlalchemyStemcellRepository,
    SqlalchemyVMRepository,
)

# ===================================================================
#  VM 저장소 테스트 스위트
# ===================================================================
class TestSqlalchemyVMRepository:
    def test_update_current_creates_record(self, db_session):
        repo = SqlalchemyVMRepository(db_session)

        vm = repo.update_current("fake-vm-cid")

        assert vm.id is not None
        assert repo.find_current().cid == "fake-vm-cid"

    def test_only_one_current_vm(self, db_session):
        """새 VM을 현재로 표시하면 이전 VM은 더 이상 현재가 아닙니다."""
        repo = SqlalchemyVMRepository(db_session)
        repo.update_current("fake-vm-cid-1")

        repo.update_current("fake-vm-cid-2")

        assert repo.find_current().cid == "fake-vm-cid-2"

    def test_clear_current(self, db_session):
        repo = SqlalchemyVMRepository(db_session)
        repo.update_current("fake-vm-cid")

        repo.clear_current()

        assert repo.find_current() is None

    def test_clear_current_without_record_is_noop(self, db_session):
        SqlalchemyVMRepository(db_session).clear_current()

# ===================================================================
#  스템셀 저장소 테스트 스위트
# ===================================================================
class TestSqlalchemyStemcellRepository:
    def test_save_and_find(self, db_session):
        repo = SqlalchemyStemcellRepository(db_session)

        saved = repo.save("bosh-stemcell", "1.0", "fake-stemcell-cid")

        found = repo.find("bosh-stemcell", "1.0")
        assert found.id == saved.id
        assert found.cid == "fake-stemcell-cid"
        assert repo.find_current() is None

    def test_update_and_clear_current(self, db_session):
        repo = SqlalchemyStemcellRepository(db_session)
        first = repo.save("bosh-stemcell", "1.0", "fake-stemcell-cid-1")
        second = repo.save("bosh-stemcell", "2.0", "fake-stemcell-cid-2")

        repo.update_current(first.id)
        repo.update_current(second.id)
        assert repo.find_current().cid == "fake-stemcell-cid-2"

        repo.clear_current()
        assert repo.find_current() is None
        # 기록 자체는 남아 있음
        assert repo.find("bosh-stemcell", "1.0") is not None

# ===================================================================
#  디스크 저장소 테스트 스위트
# ===================================================================
class TestSqlalchemyDiskRepository:
    @pytest.fixture
    def repo(self, db_session) -> SqlalchemyDiskRepository:
        return SqlalchemyDiskRepository(db_session)

    def test_save_stores_spec_and_is_not_current(self, repo):
        disk = repo.save("fake-disk-cid", 1024, {"k": "v"})

        found = repo.find("fake-disk-cid")
        assert found.id == disk.id
        assert found.size == 1024
        assert found.cloud_properties == {"k": "v"}
        assert found.is_current is False
        assert repo.find_current() is None

    def test_update_current_moves_pointer(self, repo):
        first = repo.save("fake-disk-cid-1", 1024, {})
        second = repo.save("fake-disk-cid-2", 2048, {})

        repo.update_current(first.id)
        repo.update_current(second.id)

        assert repo.find_current().cid == "fake-disk-cid-2"
        assert [d.is_current for d in repo.list_all()] == [False, True]

    def test_clear_current_keeps_records(self, repo):
        disk = repo.save("fake-disk-cid", 1024, {})
        repo.update_current(disk.id)

        repo.clear_current()

        assert repo.find_current() is None
        assert len(repo.list_all()) == 1

    def test_delete(self, repo):
        disk = repo.save("fake-disk-cid", 1024, {})

        assert repo.delete(disk) is True
        assert repo.find("fake-disk-cid") is None
        assert repo.delete(None) is False

    def test_large_size(self, repo):
        repo.save("fake-disk-cid", 100 * 1024 ** 3, {})

        assert repo.find("fake-disk-cid").size == 100 * 1024 ** 3
