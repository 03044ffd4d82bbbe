#!/usr/bin/env python3
"""
Partitioned CHT CLI Runner.

This script provides a command-line interface for running partitioned
conjugate heat transfer simulations from YAML configuration files.

Usage:
    python -m partitioned_cht.cli.run_cht config.yaml [options]

Examples:
    # Run simulation from YAML
    python -m partitioned_cht.cli.run_cht simulation.yaml

    # Run with custom working directory
    python -m partitioned_cht.cli.run_cht simulation.yaml --workdir /path/to/case

    # Preview configuration without running
    python -m partitioned_cht.cli.run_cht simulation.yaml --preview

    # Generate template configuration
    python -m partitioned_cht.cli.run_cht --template > my_config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

# Template YAML configuration
TEMPLATE_CONFIG = """# Partitioned CHT Configuration
# =============================
# Alternating fluid (steady) / solid (transient) solution of a conjugate
# heat transfer problem with large thermal-mass differences.

case_name: "Electronics_CHT_partitioned"

#============================================================================
# TIME CONTROL
#============================================================================
coupling:
  end_time: 10.0             # Total physical time [s]
  solid_time_step: 0.002     # Physical time per solid phase [s]
  fluid_iterations: 30       # Steady iterations per fluid phase
  subcycles: 2               # Fluid/solid pairs per major step
  save_interval: 0.5         # Checkpoint interval [s]
  reference_time_step: 1.0e-6  # Fully coupled timestep (speedup estimate only)

#============================================================================
# DOMAINS (continua in the solver engine)
#============================================================================
domains:
  fluid: "Fluid_Volume"
  solids:
    - "S_Silicon_Die"        # high power density
    - "S_Silicon_Substrate"
    - "S_Vapor_Chamber"
    - "S_Cold_Plate"
    - "S_PCB"
    - "S_Air_Gap"            # gas in solid region

#============================================================================
# STOPPING CRITERIA (names in the solver engine)
#============================================================================
stopping_criteria:
  physical_time: "Maximum Physical Time"
  steps: "Maximum Steps"

#============================================================================
# OUTPUT & CHECKPOINTS
#============================================================================
output:
  folder: "results"
  filename_template: "{case}_t{time:.2f}"  # engine extension is appended
  checkpoint_retries: 0      # extra attempts before a failed save aborts
  start_from: "startTime"    # "startTime" or "latestTime"

#============================================================================
# DIAGNOSTICS (optional, never abort the run)
#============================================================================
diagnostics:
  residual_monitor: "Energy"
  residual_threshold: 1.0e-3
  reports:
    - "Max Solid Temperature"
    - "Total Heat Flux"
  history_file: "results/history.csv"

#============================================================================
# SOLVER ENGINE
#============================================================================
engine:
  type: "lumped"
  params:
    time_step: 0.001         # Internal transient step [s]
    fluid:
      name: "Fluid_Volume"
      inlet_temperature: 298.15  # [K]
      capacity_rate: 80.0        # m_dot * cp [W/K]
      relaxation: 0.5
    # solids: omitted -> built-in GPU cold-plate stack
"""


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_template() -> None:
    """Print template configuration to stdout."""
    print(TEMPLATE_CONFIG)


def validate_config(config_path: str) -> bool:
    """Validate configuration file without running."""
    from partitioned_cht.core.config import SimulationConfig

    try:
        config = SimulationConfig.from_yaml(config_path)
        warnings = config.validate()

        print("Configuration validation:")
        print("=" * 50)
        print(config)

        if warnings:
            print("\nWarnings:")
            for w in warnings:
                print(f"  ⚠️  {w}")
            return False
        else:
            print("\n✓ Configuration is valid")
            return True

    except Exception as e:
        print(f"\n✗ Validation failed: {e}")
        return False


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run partitioned CHT simulations from YAML configuration files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s config.yaml                    Run simulation
  %(prog)s config.yaml --preview          Preview configuration
  %(prog)s --template > config.yaml       Generate template
        """,
    )

    parser.add_argument(
        "config",
        nargs="?",
        help="Path to YAML configuration file",
    )

    parser.add_argument(
        "--workdir",
        "-w",
        help="Working directory for simulation",
    )

    parser.add_argument(
        "--preview",
        "-p",
        action="store_true",
        help="Preview configuration without running",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration file",
    )

    parser.add_argument(
        "--template",
        "-t",
        action="store_true",
        help="Print template configuration to stdout",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.template:
        print_template()
        return 0

    if not args.config:
        parser.print_help()
        return 1

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Configuration file not found: {config_path}")
        return 1

    setup_logging(args.verbose)

    if args.validate:
        return 0 if validate_config(str(config_path)) else 1

    if args.preview:
        from partitioned_cht.core.config import SimulationConfig

        config = SimulationConfig.from_yaml(str(config_path))
        print(config)
        return 0

    try:
        from partitioned_cht.runner import CouplingRunner

        runner = CouplingRunner(str(config_path), working_dir=args.workdir)
        runner.run()
        return 0

    except KeyboardInterrupt:
        print("\nSimulation interrupted by user")
        return 130

    except Exception as e:
        logging.exception("Simulation failed")
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
