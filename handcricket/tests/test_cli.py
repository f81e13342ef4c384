"""
Tests for the terminal game.
"""

import argparse
import itertools

import pytest

from ..cli import cmd_play, main
from ..session import LoopState


class TestCmdPlay:

    def test_plays_until_out(self, capsys):
        moves = itertools.chain(["x", "9"], itertools.cycle(["1", "2", "3", "4", "5", "6"]))
        args = argparse.Namespace(account=None, seed=5)

        result = cmd_play(args, input_fn=lambda prompt: next(moves))

        assert result.game_over
        assert result.loop_state == LoopState.ENDED
        output = capsys.readouterr().out
        assert "entry fee settled" in output
        assert "InvalidChoice" in output
        assert "Computer total:" in output

    def test_bad_account_exits(self):
        args = argparse.Namespace(account="nope", seed=None)

        with pytest.raises(SystemExit):
            cmd_play(args, input_fn=lambda prompt: "1")

    def test_no_command_prints_help(self):
        with pytest.raises(SystemExit):
            main([])
