import pytest


def test_fmt_pct_and_bytes(m):
    assert m._fmt_pct(0, 0) == "0%"
    assert m._fmt_pct(50, 100).strip().endswith("%")
    assert m._fmt_pct(10, 10).strip().startswith("100")

    assert m._fmt_bytes(0) == "0.00 B"
    assert m._fmt_bytes(1024).endswith("KiB")


def test_progress_line_calls_bucketed(no_progress, m):
    p = m.ProgressLine("Encoding", "x.txt")
    p(0, 100)
    p(0, 100)
    p(10, 100)
    p(10, 100)
    p(19, 100)
    p(19, 100)
    p(5, 0)
    assert len(no_progress) == 3
    assert all(line.startswith("Encoding x.txt") for line in no_progress)


def test_cli_parser_accepts_subcommands(m):
    parser = m.get_parser()
    ns = parser.parse_args(["encode", "in.txt", "out.grin"])
    assert ns.cmd == "encode" and not ns.no_progress
    ns2 = parser.parse_args(["d", "in.grin", "out.txt", "-P"])
    assert ns2.cmd == "d" and ns2.no_progress
    assert (ns2.infile, ns2.outfile) == ("in.grin", "out.txt")


def test_cli_parser_requires_both_paths(m, capsys):
    with pytest.raises(SystemExit) as exc:
        m.get_parser().parse_args(["encode", "only-one"])
    assert exc.value.code == 2
    assert "usage" in capsys.readouterr().err
