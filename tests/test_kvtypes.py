import dataclasses

import pytest

from kvlabs.kvtypes import Err, GetArgs, GetReply, PutAppendArgs, PutAppendReply


@pytest.mark.parametrize(
    "text, member",
    [("OK", Err.OK), ("ErrNoKey", Err.NO_KEY), ("ErrWrongGroup", Err.WRONG_GROUP)],
)
def test_err_from_wire_string(text, member):
    assert Err(text) is member
    assert str(member) == text
    assert member == text


def test_err_rejects_unknown_string():
    with pytest.raises(ValueError):
        Err("ErrSomethingElse")


def test_put_append_args_fields_and_equality():
    args = PutAppendArgs("a", "x", "Append")
    assert (args.key, args.value, args.op) == ("a", "x", "Append")
    assert args == PutAppendArgs(key="a", value="x", op="Append")
    assert args != PutAppendArgs("a", "x", "Put")


def test_args_are_immutable():
    args = GetArgs("a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        args.key = "b"
    assert args.key == "a"
    assert args == GetArgs("a")


def test_reply_defaults():
    reply = GetReply()
    assert reply.err is Err.OK
    assert reply.value == ""
    assert reply.wrong_leader is False
    assert PutAppendReply() == PutAppendReply(err=Err.OK, wrong_leader=False)


def test_replace_builds_new_reply():
    reply = GetReply(err=Err.NO_KEY)
    updated = dataclasses.replace(reply, err=Err.OK, value="xb")
    assert updated.value == "xb"
    assert updated.err is Err.OK
    assert reply.err is Err.NO_KEY