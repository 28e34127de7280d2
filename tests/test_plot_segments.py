import matplotlib
matplotlib.use('Agg')

import pandas as pd
import pytest

from detect_hidden_repeats import DEMO_SEQUENCE, segments_to_dataframe
from hidden_repeats import find_hidden_repeats
from plot_segments import load_segment_table, main, plot_segment_scores


def write_table(path):
    df = pd.concat([
        segments_to_dataframe(find_hidden_repeats(DEMO_SEQUENCE), "demo"),
        segments_to_dataframe(find_hidden_repeats("GTG" * 8 + "ACGT" * 3), "other"),
    ], ignore_index=True)
    df.to_csv(path, sep='\t', index=False)
    return df


def test_load_segment_table(tmp_path):
    tsv = tmp_path / "segments.tsv"
    write_table(tsv)
    df = load_segment_table(tsv)
    assert df['sequence_id'].tolist() == ["demo", "demo", "demo", "other", "other"]
    assert df['start'].tolist() == [0, 12, 24, 0, 24]


def test_plot_segment_scores(tmp_path):
    df = write_table(tmp_path / "segments.tsv")
    written = plot_segment_scores(df, str(tmp_path / "plots"))

    assert len(written) == 2
    assert (tmp_path / "plots" / "demo_hidden_repeats.png").exists()


def test_main(tmp_path):
    tsv = tmp_path / "segments.tsv"
    write_table(tsv)
    assert main([str(tsv), '-o', str(tmp_path / "plots")]) == 0
    assert (tmp_path / "plots" / "other_hidden_repeats.png").exists()


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.tsv")]) == 1


def test_main_missing_columns(tmp_path):
    tsv = tmp_path / "bad.tsv"
    tsv.write_text("a\tb\n1\t2\n")
    assert main([str(tsv)]) == 1


@pytest.mark.filterwarnings("error::RuntimeWarning")
def test_zero_thresholds_are_clamped(tmp_path):
    df = write_table(tmp_path / "segments.tsv")
    written = plot_segment_scores(df, str(tmp_path / "plots"), weak_threshold=0.0, strong_threshold=0.0)
    assert len(written) == 2


def test_main_zero_thresholds(tmp_path):
    tsv = tmp_path / "segments.tsv"
    write_table(tsv)
    assert main([str(tsv), '-o', str(tmp_path / "plots"),
                 '--weak-threshold', '0', '--strong-threshold', '0']) == 0
