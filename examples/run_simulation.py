#!/usr/bin/env python3
"""Example script to run the closed-loop highway simulation.

This script demonstrates how to use the highway simulator.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from highway_planner.config import PlannerConfig, load_config
from highway_planner.simulation import HighwaySimulator


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description='Run closed-loop highway planning simulation'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default='scenarios/highway_loop.yaml',
        help='Path to scenario configuration file'
    )
    parser.add_argument(
        '--cycles',
        type=int,
        default=None,
        help='Number of telemetry cycles (overrides config)'
    )
    parser.add_argument(
        '--map',
        type=str,
        default=None,
        help='Road map file with x y s dx dy rows (overrides config)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output directory (overrides config)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=args.log_level
    )

    # Load configuration
    if Path(args.scenario).exists():
        logger.info(f"Loading scenario from {args.scenario}")
        config = load_config(args.scenario)
    else:
        logger.warning(f"Scenario {args.scenario} not found, using defaults")
        config = PlannerConfig()

    if args.map is not None:
        config.map_file = args.map
    if args.output is not None:
        config.output_path = args.output

    # Create simulator
    logger.info("Creating highway simulator")
    simulator = HighwaySimulator(config)

    # Run simulation
    logger.info("Starting simulation")
    results = simulator.run(n_cycles=args.cycles)

    # Save results
    logger.info("Saving results")
    metrics = simulator.save_results()

    # Print summary
    logger.info("=" * 60)
    logger.info("SIMULATION SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total cycles: {len(results)}")
    logger.info(f"Total time: {simulator.time:.2f}s")
    logger.info(f"Final ego position: ({simulator.ego.x:.2f}, {simulator.ego.y:.2f}), s={simulator.ego.s:.1f}m")
    logger.info(f"Final lane: {simulator.planner.state.lane}")
    logger.info(f"Final reference speed: {simulator.planner.state.reference_speed:.2f} mph")
    logger.info(f"Lane changes: {metrics['lane_changes']}")
    logger.info(f"Max speed: {metrics['max_speed']:.2f} m/s, max accel: {metrics['max_accel']:.2f} m/s²")

    if metrics['collision_count'] > 0:
        logger.error("COLLISION OCCURRED!")
    else:
        logger.success("No collisions")

    logger.info("=" * 60)
    logger.success("Simulation complete!")


if __name__ == '__main__':
    main()
