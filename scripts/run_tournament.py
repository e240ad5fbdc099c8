"""
Simulate bot-only Cacho games and save per-game summaries, event trails, per-agent stats and a win% chart.
Every game seats the selected agents in rotation so each one plays from every seat.
Usage: python scripts/run_tournament.py --agents all --players 4 --games 50 --data-dir data
"""
import os
import argparse
import datetime
import hashlib
import logging
import random
from typing import Any, Dict, List

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from cacho.persistence import csv_io
from cacho.simulation import GameResult, parse_agent_list, play_game, rotate_seats, tally_agents

AGENT_STATS_HEADER = ['agent', 'games', 'wins', 'win_percent', 'wins_by_seat']


def generate_game_id(seat_keys: List[str], timestamp: str) -> str:
    raw = f"{timestamp}_{'_'.join(seat_keys)}"
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def plot_agent_rows(agent_rows: List[Dict[str, Any]], out_path: str):
    """Bar chart of the win% column of tally_agents(), labelled with wins/games."""
    labels = [row['agent'] for row in agent_rows]
    values = [row['win_percent'] for row in agent_rows]
    fig, ax = plt.subplots(figsize=(max(6, len(labels) * 1.2), 4))
    bars = ax.bar(labels, values, color=[f"C{i}" for i in range(len(labels))])
    ax.set_ylabel('Win percentage (%)')
    ax.set_ylim(0, 100)
    ax.set_title('Cacho simulation: win% per bot personality')
    for rect, row in zip(bars, agent_rows):
        ax.annotate(f"{row['win_percent']:.1f}% ({row['wins']}/{row['games']})",
                    (rect.get_x() + rect.get_width() / 2.0, rect.get_height()),
                    xytext=(0, 3), textcoords='offset points', ha='center', fontsize=8)
    fig.tight_layout()
    fig.savefig(out_path)
    plt.close(fig)


def summary_row(game_id: str, index: int, ts: str, result: GameResult) -> Dict[str, Any]:
    row = {
        'game_id': game_id,
        'game_index': index,
        'timestamp': ts,
        'seats': '|'.join(result.seat_keys),
        'winner_seat': result.winner_seat,
        'winner_agent': result.winner_agent,
        'error': None if result.winner_seat is not None else 'no winner',
        'end_reason': result.end_reason,
    }
    for name in ('rounds', 'steps', 'bets', 'doubts', 'spot_ons', 'salpicons', 'bonus_lives_used'):
        row[name] = result.counters[name]
    return row


def event_rows(game_id: str, result: GameResult) -> List[Dict[str, Any]]:
    rows = []
    for ev in result.events:
        player = ev.get('player')
        rows.append({
            'game_id': game_id,
            'round': ev['round'],
            'event_type': ev['type'],
            'player': player,
            'player_type': result.seat_keys[player] if isinstance(player, int) else None,
            'payload': str(ev),
        })
    return rows


def run_tournament(agent_keys: List[str], players: int, games: int, data_dir: str, seed: int, max_steps: int):
    os.makedirs(data_dir, exist_ok=True)
    summary_csv = os.path.join(data_dir, 'game_summary.csv')
    events_csv = os.path.join(data_dir, 'game_events.csv')
    agent_csv = os.path.join(data_dir, 'agent_stats.csv')
    chart_png = os.path.join(data_dir, 'win_percentages.png')

    rng = random.Random(seed)
    results = []
    for i in range(games):
        seat_keys = rotate_seats(agent_keys, players, i)
        ts = datetime.datetime.now(datetime.timezone.utc).isoformat()
        game_id = generate_game_id(seat_keys, f"{ts}_{i}")
        print(f"Running game {i + 1}/{games}: {', '.join(seat_keys)}...", end=' ')

        result = play_game(seat_keys, rng, max_steps)
        csv_io.append_row_to_csv(summary_row(game_id, i, ts, result), summary_csv, csv_io.get_summary_header())
        csv_io.append_rows_to_csv(event_rows(game_id, result), events_csv, csv_io.get_event_header())
        results.append(result)
        print(f"winner: {result.winner_agent or 'none'}")

    agent_rows = tally_agents(results, agent_keys)
    csv_io.append_rows_to_csv(agent_rows, agent_csv, AGENT_STATS_HEADER)
    plot_agent_rows(agent_rows, chart_png)

    for row in agent_rows:
        print(f"  {row['agent']:<12} {row['wins']:>4}/{row['games']:<4} {row['win_percent']:6.1f}%")
    print(f"Simulation finished. Game summaries saved to {summary_csv}, events to {events_csv}")
    print(f"Per-agent stats: {agent_csv}")
    print(f"Win percentage chart: {chart_png}")


def main():
    parser = argparse.ArgumentParser(description='Simulate bot-only Cacho games between agents')
    parser.add_argument('--agents', type=str, default='all', help='Comma-separated list of registered agent keys or "all"')
    parser.add_argument('--players', type=int, default=4, help='Seats per game (2-6)')
    parser.add_argument('--games', type=int, default=50, help='Number of games to simulate')
    parser.add_argument('--data-dir', type=str, default='data', help='Directory to save csv and charts')
    parser.add_argument('--seed', type=int, default=69, help='Seed for reproducible simulations')
    parser.add_argument('--max-steps', type=int, default=20000, help='Safety bound on transitions per game')
    parser.add_argument('--verbose', action='store_true', help='Log ignored transitions')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        agent_keys = parse_agent_list(args.agents)
    except ValueError as exc:
        raise SystemExit(str(exc))

    run_tournament(agent_keys, args.players, args.games, args.data_dir, args.seed, args.max_steps)


if __name__ == '__main__':
    main()
