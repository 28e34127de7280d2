import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import argparse
import os
import sys


SCORE_FLOOR = 1e-300


def load_segment_table(tsv_file_path):
    """
    Read a segment table written by detect_hidden_repeats.

    Args:
        tsv_file_path (str): Path to the TSV file.

    Returns:
        pd.DataFrame: Segment table sorted by sequence and start.
    """
    df = pd.read_csv(tsv_file_path, sep='\t')
    missing = {'sequence_id', 'start', 'end', 'combined_score'} - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in {tsv_file_path}: {', '.join(sorted(missing))}")
    df['sequence_id'] = df['sequence_id'].astype(str)
    return df.sort_values(['sequence_id', 'start']).reset_index(drop=True)


def plot_segment_scores(df, output_dir, weak_threshold=0.1, strong_threshold=0.01):
    """
    Plot -log10(score) along each sequence and save one PNG per sequence.

    Args:
        df (pd.DataFrame): Segment table.
        output_dir (str): Directory for saving plots.
        weak_threshold (float): Score above which a segment is weak.
        strong_threshold (float): Score below which a segment is strong.

    Returns:
        list: Paths of the written plots.
    """
    if not os.path.exists(output_dir):
        print(f"Creating directory for plots: {output_dir}")
        os.makedirs(output_dir)

    # Thresholds of 0 would put the lines at infinity
    strong_line = -np.log10(max(strong_threshold, SCORE_FLOOR))
    weak_line = -np.log10(max(weak_threshold, SCORE_FLOOR))

    written = []
    for seq_id in df['sequence_id'].unique():
        print(f"Creating plot for sequence: {seq_id}...")
        seq_df = df[df['sequence_id'] == seq_id]

        # Clamp so that a zero score still gets a finite height
        signal = -np.log10(np.maximum(seq_df['combined_score'].to_numpy(dtype=float), SCORE_FLOOR))

        fig, ax = plt.subplots(figsize=(18, 7))

        for row, value in zip(seq_df.itertuples(index=False), signal):
            strong = row.combined_score < strong_threshold
            ax.hlines(value, row.start, row.end,
                      color='darkred' if strong else 'darkcyan', linewidth=3)
            if strong:
                ax.axvspan(row.start, row.end, alpha=0.15, color='orange')

        ax.axhline(strong_line, color='darkred', linestyle='--', linewidth=1,
                   label=f'strong (score < {strong_threshold})')
        ax.axhline(weak_line, color='gray', linestyle=':', linewidth=1,
                   label=f'weak (score > {weak_threshold})')

        ax.set_title(f'Hidden repeat segments along {seq_id}', fontsize=18, fontweight='bold', pad=20)
        ax.set_xlabel('Position (bp)', fontsize=14, labelpad=15)
        ax.set_ylabel('-log10(combined score)', fontsize=14, labelpad=15)
        ax.tick_params(axis='both', which='major', labelsize=12)
        ax.grid(True, which='both', linestyle='--', linewidth=0.5)
        ax.set_xlim(0, seq_df['end'].max())
        ax.set_ylim(0, max(signal.max(), strong_line, 1.0) * 1.1)
        ax.legend(loc='upper right')

        output_filename = os.path.join(output_dir, f'{seq_id}_hidden_repeats.png')
        plt.savefig(output_filename, dpi=200, bbox_inches='tight')
        plt.close(fig)
        written.append(output_filename)

    print(f"\nDone! All plots saved in directory '{output_dir}'.")
    return written


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Visualize hidden repeat segment scores from a detect_hidden_repeats table.',
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('tsv_file', help='Path to the TSV file written by detect_hidden_repeats.')
    parser.add_argument(
        '-o', '--output_dir',
        default='hidden_repeat_plots',
        help='Directory to save plots (default: hidden_repeat_plots).'
    )
    parser.add_argument('--weak-threshold', type=float, default=0.1,
                        help='Weak threshold drawn on the plot (default: 0.1).')
    parser.add_argument('--strong-threshold', type=float, default=0.01,
                        help='Strong threshold drawn on the plot (default: 0.01).')

    args = parser.parse_args(argv)

    try:
        df = load_segment_table(args.tsv_file)
    except FileNotFoundError:
        print(f"Error: File not found at path {args.tsv_file}", file=sys.stderr)
        return 1
    except pd.errors.EmptyDataError:
        print(f"Error: File {args.tsv_file} is empty.", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if df.empty:
        print("No segments to plot.")
        return 0

    plot_segment_scores(df, args.output_dir, args.weak_threshold, args.strong_threshold)
    return 0


if __name__ == '__main__':
    sys.exit(main())
