#!/usr/bin/env python3
"""Run the Powerwall Reserve Adjuster locally for testing."""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent / '.env'
if env_file.exists():
    load_dotenv(env_file)
    print(f"Loaded environment from {env_file}")
else:
    print("No .env file found, using existing environment")

sys.path.insert(0, str(Path(__file__).parent))

from reserve_adjuster.main import main  # noqa: E402

if __name__ == '__main__':
    print("=" * 60)
    print("Powerwall Reserve Adjuster - Local Testing")
    print("=" * 60)
    print()

    print("Configuration:")
    print(f"  Peak reserve: {os.getenv('PEAK_RESERVE', '(stored)')}")
    print(f"  Settings file: {os.getenv('SETTINGS_FILE', '(from options)')}")
    print(f"  HA API URL: {os.getenv('HA_API_URL', '(not set)')}")
    print(f"  MQTT host: {os.getenv('MQTT_HOST', 'core-mosquitto')}")
    print(f"  RUN_ONCE: {os.getenv('RUN_ONCE', '0')}")
    print()
    print("=" * 60)
    print()

    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)
