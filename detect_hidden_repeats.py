#!/usr/bin/env python3
"""
Detect hidden periodic repeats in DNA sequences and export them as
TSV tables, GFF annotations and a summary report.
"""

import argparse
import json
import re
import sys
import time
from collections import defaultdict
from dataclasses import replace
from pathlib import Path

import pandas as pd

from hidden_repeats import RepeatConfig, find_hidden_repeats


DEMO_SEQUENCE = (
    "GTGACGGTGTAG"   # strong repeat GTG
    "ACGTTAGGACTA"   # noise
    "GTGACGGTGTAG"   # strong repeat GTG again
)

CONFIG_KEYS = ('window_length', 'word_length', 'weak_threshold',
               'strong_threshold', 'symbol_probability')


def log_message(message, level='INFO'):
    """Print message with timestamp; warnings and errors go to stderr."""
    timestamp = time.strftime('%Y-%m-%d %H:%M:%S')
    stream = sys.stdout if level == 'INFO' else sys.stderr
    print(f"[{timestamp}] {level}: {message}", file=stream)


def parse_config_file(config_file):
    """Parse JSON configuration file."""
    with open(config_file, 'r') as f:
        return json.load(f)


def read_fasta(filename):
    """
    Read FASTA file and return dictionary of sequences.

    Args:
        filename: Path to FASTA file

    Returns:
        Dictionary with sequence IDs as keys and upper-cased sequences as values
    """
    sequences = {}
    current_id = None
    current_seq = []

    with open(filename, 'r') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith('>'):
                if current_id is not None:
                    sequences[current_id] = ''.join(current_seq).upper()
                current_id = line[1:].split()[0]  # Take first word as ID
                current_seq = []
            else:
                current_seq.append(line)

        if current_id is not None:
            sequences[current_id] = ''.join(current_seq).upper()

    return sequences


def classify_strength(score, config):
    if score < config.strong_threshold:
        return 'strong'
    if score > config.weak_threshold:
        return 'weak'
    return 'intermediate'


def segments_to_dataframe(segments, sequence_id, config=RepeatConfig()):
    """
    Tabulate final segments.

    Args:
        segments: List of Segment objects from find_hidden_repeats
        sequence_id: Name of the sequence the segments belong to
        config: Configuration used for the run (for strength labels)

    Returns:
        pd.DataFrame: One row per segment
    """
    columns = ['sequence_id', 'start', 'end', 'length', 'word', 'combined_score', 'strength']
    columns += [f'p_pos{pos + 1}' for pos in range(config.word_length)]

    rows = []
    for seg in segments:
        row = {
            'sequence_id': sequence_id,
            'start': seg.start,
            'end': seg.end,
            'length': seg.length,
            'word': seg.consensus_word,
            'combined_score': seg.combined_score,
            'strength': classify_strength(seg.combined_score, config),
        }
        for pos, pvalue in enumerate(seg.position_pvalues):
            row[f'p_pos{pos + 1}'] = pvalue
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def write_gff(df, output_file, source='HiddenRepeats'):
    """
    Write detected segments to GFF3 format file.

    Args:
        df: Segment table from segments_to_dataframe
        output_file: Output GFF file path
        source: Source name for GFF
    """
    with open(output_file, 'w') as f:
        f.write("##gff-version 3\n")
        f.write(f"##source {source}\n")
        f.write("# Segments with a periodic consensus word detected by window scoring\n")
        f.write("# score column holds the Fisher-combined score (lower = stronger)\n")

        for feature_id, row in enumerate(df.itertuples(index=False), start=1):
            attributes = [
                f"ID=hidden_repeat_{feature_id}",
                f"word={row.word}",
                f"score={row.combined_score:.6g}",
                f"strength={row.strength}",
            ]
            # GFF is 1-based, inclusive
            f.write(f"{row.sequence_id}\t{source}\thidden_repeat\t{row.start + 1}\t{row.end}\t"
                    f"{row.combined_score:.6g}\t.\t.\t{';'.join(attributes)}\n")


def write_summary(df, config, input_name, output_file):
    """Write per-sequence counts and the strength distribution."""
    with open(output_file, 'w') as f:
        f.write("Hidden Repeat Detection Summary\n")
        f.write("=" * 50 + "\n\n")
        f.write(f"Input: {input_name}\n")
        f.write(f"Window length: {config.window_length}\n")
        f.write(f"Word length: {config.word_length}\n")
        f.write(f"Weak threshold: {config.weak_threshold}\n")
        f.write(f"Strong threshold: {config.strong_threshold}\n\n")

        f.write("Segments by strength:\n")
        f.write("-" * 30 + "\n")
        for strength in ['strong', 'intermediate', 'weak']:
            subset = df[df['strength'] == strength]
            f.write(f"{strength:15s}: {len(subset):5d} segments, "
                    f"{int(subset['length'].sum()):12,d} bp total\n")
        f.write("-" * 30 + "\n")
        f.write(f"{'Total':15s}: {len(df):5d} segments, {int(df['length'].sum()):12,d} bp total\n")

        f.write("\n\nPer-Sequence Statistics:\n")
        f.write("-" * 30 + "\n")
        seq_stats = defaultdict(lambda: {'count': 0, 'strong': 0, 'length': 0})
        for row in df.itertuples(index=False):
            seq_stats[row.sequence_id]['count'] += 1
            seq_stats[row.sequence_id]['length'] += row.length
            if row.strength == 'strong':
                seq_stats[row.sequence_id]['strong'] += 1

        for seq_id in sorted(seq_stats.keys()):
            stats = seq_stats[seq_id]
            f.write(f"{seq_id:15s}: {stats['count']:3d} segments ({stats['strong']} strong), "
                    f"{stats['length']:10,d} bp\n")


def print_segments(segments):
    print("\nDetected Hidden Repeat Segments:")
    for s in segments:
        print(f"Start:{s.start}, Len:{s.length}, Word:{s.consensus_word}, P:{s.combined_score:.5f}")


def split_at_unknown(sequence, alphabet):
    """
    Split a sequence into maximal runs of alphabet symbols.

    Returns:
        list: (offset, run) tuples; symbols outside the alphabet (N runs,
        gaps) are dropped
    """
    pattern = re.compile(f"[{re.escape(alphabet)}]+")
    return [(match.start(), match.group()) for match in pattern.finditer(sequence)]


def find_in_runs(sequence, config):
    """Run detection on each alphabet-only run, keeping original coordinates."""
    segments = []
    for offset, run in split_at_unknown(sequence, config.alphabet):
        segments.extend(replace(seg, start=seg.start + offset)
                        for seg in find_hidden_repeats(run, config))
    return segments


def detect_in_sequences(sequences, config, split_unknown=False):
    """
    Run detection on every sequence.

    Records with symbols outside the alphabet are skipped, unless
    split_unknown is set, in which case they are cut at those symbols and
    each run is processed on its own.

    Args:
        sequences: Dictionary of sequence ID -> sequence
        config: RepeatConfig for the run
        split_unknown: Split records at unknown symbols instead of skipping them

    Returns:
        pd.DataFrame: Combined segment table for all processed sequences
    """
    tables = []
    for seq_id, sequence in sequences.items():
        log_message(f"Processing {seq_id} ({len(sequence):,} bp)")
        try:
            if split_unknown:
                segments = find_in_runs(sequence, config)
            else:
                segments = find_hidden_repeats(sequence, config)
        except ValueError as e:
            log_message(f"Skipping {seq_id}: {e}", level='WARNING')
            continue
        print_segments(segments)
        tables.append(segments_to_dataframe(segments, seq_id, config))

    if not tables:
        return segments_to_dataframe([], '', config)
    return pd.concat(tables, ignore_index=True)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Detect hidden periodic repeats in DNA sequences.',
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('fasta', nargs='?',
                       help='Input FASTA file')
    parser.add_argument('--demo',
                       action='store_true',
                       help='Run on the built-in 36 bp demonstration sequence')
    parser.add_argument('--split-at-n',
                       action='store_true',
                       help='Split records at N runs (or any non-ACGT symbol) instead of\n'
                            'skipping the whole record')
    parser.add_argument('-o', '--output-prefix',
                       default='hidden_repeats',
                       help='Prefix for output files (default: hidden_repeats)')
    parser.add_argument('-w', '--window-length',
                       type=int, default=12,
                       help='Window length in bp (default: 12)')
    parser.add_argument('-k', '--word-length',
                       type=int, default=3,
                       help='Consensus word length (default: 3)')
    parser.add_argument('--weak-threshold',
                       type=float, default=0.1,
                       help='Score above which a segment is weak (default: 0.1)')
    parser.add_argument('--strong-threshold',
                       type=float, default=0.01,
                       help='Score below which a segment is strong (default: 0.01)')
    parser.add_argument('-c', '--config',
                       help='JSON configuration file (overrides command line arguments)')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.demo and not args.fasta:
        parser.error('either a FASTA file or --demo is required')

    settings = {
        'window_length': args.window_length,
        'word_length': args.word_length,
        'weak_threshold': args.weak_threshold,
        'strong_threshold': args.strong_threshold,
    }

    if args.config:
        file_config = parse_config_file(args.config)
        unknown = set(file_config) - set(CONFIG_KEYS)
        if unknown:
            log_message(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}",
                        level='WARNING')
        settings.update({key: file_config[key] for key in CONFIG_KEYS if key in file_config})
        print(f"Loaded configuration from {args.config}")

    try:
        config = RepeatConfig(**settings).validate()
    except ValueError as e:
        log_message(f"Invalid configuration: {e}", level='ERROR')
        return 1

    if args.demo:
        sequences = {'demo': DEMO_SEQUENCE}
        input_name = 'built-in demo sequence'
    else:
        if not Path(args.fasta).exists():
            log_message(f"Input file {args.fasta} not found!", level='ERROR')
            return 1
        print(f"Reading sequences from {args.fasta}...")
        sequences = read_fasta(args.fasta)
        input_name = args.fasta

    for seq_id, sequence in sequences.items():
        print(f"Loaded sequence {seq_id} length: {len(sequence)}")

    df = detect_in_sequences(sequences, config, split_unknown=args.split_at_n)

    tsv_file = f"{args.output_prefix}.tsv"
    gff_file = f"{args.output_prefix}.gff3"
    summary_file = f"{args.output_prefix}_summary.txt"
    config_file = f"{args.output_prefix}_config.json"

    df.to_csv(tsv_file, sep='\t', index=False)
    write_gff(df, gff_file)
    write_summary(df, config, input_name, summary_file)
    with open(config_file, 'w') as f:
        json.dump({key: getattr(config, key) for key in CONFIG_KEYS}, f, indent=2)

    print(f"\nDone! Output files:")
    print(f"  - {tsv_file} (segment table)")
    print(f"  - {gff_file} (GFF3 annotations)")
    print(f"  - {summary_file} (Summary statistics)")
    print(f"  - {config_file} (Configuration)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
