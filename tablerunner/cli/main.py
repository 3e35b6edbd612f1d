"""Main CLI entry point for tablerunner"""

import sys
import argparse
import asyncio
from typing import Optional, List

from dotenv import load_dotenv

from ..core.bot import StopReason
from ..utils.logger import logger
from .commands import (
    run_bot,
    resolve_action,
    show_strategy,
    list_sessions,
    remove_session,
)


SUCCESS_REASONS = (StopReason.TARGET_REACHED, StopReason.STOPPED)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    
    parser = argparse.ArgumentParser(
        prog='tablerunner',
        description='Tablerunner CLI - scripted blackjack session runner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Play 1.00 per hand until 500 has been wagered
  tablerunner run --capture capture.json --bet 1 --target 500
  
  # Use a settings file and a custom strategy table
  tablerunner run --capture capture.json --config settings.yaml --strategy strategy.json
  
  # Check a single decision
  tablerunner resolve --dealer 10 --hand 16 --allow Hit,Stand
  
  # Show or export the strategy table
  tablerunner strategy
  tablerunner strategy --export strategy.json
  
  # List recorded sessions
  tablerunner sessions
  tablerunner sessions --remove bjmb
"""
    )
    
    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    
    # === run command ===
    run_parser = subparsers.add_parser(
        'run',
        help='Play rounds on a captured session'
    )
    run_parser.add_argument(
        '--capture',
        required=True,
        help='JSON capture file (origin, symbol, sessionKey, requestUrl, index, counter)'
    )
    run_parser.add_argument(
        '--strategy',
        help='Strategy table JSON (default: $TABLERUNNER_STRATEGY or built-in)'
    )
    run_parser.add_argument(
        '--config',
        help='YAML settings file (betUnit, wagerTarget, actionDelay, delayStdDev)'
    )
    run_parser.add_argument(
        '--bet',
        dest='bet_unit',
        help='Stake per hand'
    )
    run_parser.add_argument(
        '--target',
        dest='wager_target',
        help='Stop after wagering this much (0: unlimited)'
    )
    run_parser.add_argument(
        '--delay',
        dest='action_delay',
        type=float,
        help='Mean delay before each request in ms'
    )
    run_parser.add_argument(
        '--stddev',
        dest='delay_std_dev',
        type=float,
        help='Delay standard deviation in ms'
    )
    run_parser.add_argument(
        '--name',
        help='Session name in the state file (default: game symbol)'
    )
    
    # === resolve command ===
    resolve_parser = subparsers.add_parser(
        'resolve',
        help='Resolve one strategy decision'
    )
    resolve_parser.add_argument(
        '--dealer',
        type=int,
        required=True,
        help='Dealer upcard value (1 or 11 for an ace)'
    )
    resolve_parser.add_argument(
        '--hand',
        required=True,
        help='Hand signature (e.g. 16, 6/16, 16s)'
    )
    resolve_parser.add_argument(
        '--allow',
        help='Comma-separated permitted actions (default: all)'
    )
    resolve_parser.add_argument(
        '--strategy',
        help='Strategy table JSON'
    )
    
    # === strategy command ===
    strategy_parser = subparsers.add_parser(
        'strategy',
        help='Show or export the strategy table'
    )
    strategy_parser.add_argument(
        '--strategy',
        help='Strategy table JSON'
    )
    strategy_parser.add_argument(
        '--export',
        help='Write the table as JSON to this path'
    )
    
    # === sessions command ===
    sessions_parser = subparsers.add_parser(
        'sessions',
        help='List recorded sessions'
    )
    sessions_parser.add_argument(
        '--json',
        action='store_true',
        help='Output in JSON format'
    )
    sessions_parser.add_argument(
        '--remove',
        metavar='NAME',
        help='Forget a recorded session'
    )
    
    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point"""
    load_dotenv(override=True)

    parser = create_parser()
    args = parser.parse_args(argv)
    
    if not args.command:
        parser.print_help()
        sys.exit(0)
    
    try:
        if args.command == 'run':
            reason = asyncio.run(run_bot(
                capture_path=args.capture,
                strategy_path=args.strategy,
                config_path=args.config,
                overrides={
                    "bet_unit": args.bet_unit,
                    "wager_target": args.wager_target,
                    "action_delay": args.action_delay,
                    "delay_std_dev": args.delay_std_dev,
                },
                name=args.name
            ))
            if reason not in SUCCESS_REASONS:
                sys.exit(1)
        
        elif args.command == 'resolve':
            allowed = args.allow.split(',') if args.allow else None
            resolve_action(
                dealer=args.dealer,
                hand=args.hand,
                allowed=allowed,
                strategy_path=args.strategy
            )
        
        elif args.command == 'strategy':
            show_strategy(
                strategy_path=args.strategy,
                export_path=args.export
            )
        
        elif args.command == 'sessions':
            if args.remove:
                remove_session(args.remove)
            else:
                list_sessions(json_output=args.json)
        
        else:
            parser.print_help()
            sys.exit(1)
    
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
