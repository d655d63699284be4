from srtlive.role import Role, RoleState
from srtlive.role_list import RoleList


class FakeSrt:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True

    def is_broken(self):
        return False


def test_push_pop_is_fifo():
    roles = RoleList()
    first, second = Role(), Role()
    roles.push(first)
    roles.push(second)
    assert len(roles) == 2
    assert roles.pop() is first
    assert roles.pop() is second
    assert roles.pop() is None


def test_push_none_is_ignored():
    roles = RoleList()
    roles.push(None)
    assert len(roles) == 0


def test_erase_uninits_roles():
    roles = RoleList()
    srt = FakeSrt()
    role = Role(srt=srt)
    role.init()
    roles.push(role)
    roles.erase()
    assert len(roles) == 0
    assert srt.closed
    assert role.state == RoleState.UNINIT