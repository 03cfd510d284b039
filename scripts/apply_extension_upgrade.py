#!/usr/bin/env python3
"""
Apply an extension upgrade via NATS.

Connects to NATS and asks a running upgrade service to bring one extension
up to its manifest version. Used in CI and by operators after installing a
new extension release.
"""
import asyncio
import json
import sys

import nats


async def apply_upgrade(identifier: str, nats_url: str = "nats://localhost:4222",
                        timeout: float = 60.0) -> bool:
    """
    Request an upgrade for one extension.

    Args:
        identifier: Extension identifier (e.g., "article-hub")
        nats_url: NATS server URL
        timeout: Seconds to wait for the upgrade to finish

    Returns:
        True if the upgrade succeeded, False otherwise
    """
    subject = f"extensions.upgrade.{identifier}.apply"
    try:
        nc = await nats.connect(nats_url, connect_timeout=10.0)
        print(f"✓ Connected to NATS at {nats_url}")

        print(f"Requesting upgrade for '{identifier}'...")
        print(f"  Subject: {subject}")

        response = await nc.request(subject, b"{}", timeout=timeout)
        result = json.loads(response.data.decode())
        await nc.close()

        if result.get("success"):
            upgraded = result.get("upgraded_versions", [])
            if upgraded:
                print(f"✓ Upgraded through {len(upgraded)} version(s): {', '.join(upgraded)}")
                for migration in result.get("migrations", []):
                    print(f"  - {migration['name']} ({migration['version']}): {migration['status']}")
            else:
                print("✓ Already up to date")

            print(f"✓ Current version: {result.get('current')}")
            return True

        error = result.get("error", {})
        print(f"✗ Upgrade failed: {error.get('message', 'unknown error')}", file=sys.stderr)
        print(f"  Error code: {error.get('code', 'unknown')}", file=sys.stderr)
        print(f"  Full error response: {json.dumps(result, indent=2)}", file=sys.stderr)
        return False

    except asyncio.TimeoutError:
        print("✗ Timeout waiting for response from upgrade service", file=sys.stderr)
        print(f"  Make sure the upgrade service is running and responding to {subject}", file=sys.stderr)
        return False
    except Exception as e:
        print(f"✗ Error applying upgrade: {e}", file=sys.stderr)
        return False


async def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print("Usage: python apply_extension_upgrade.py <identifier> [nats_url]")
        print("Example: python apply_extension_upgrade.py article-hub nats://localhost:4222")
        sys.exit(1)

    identifier = sys.argv[1]
    nats_url = sys.argv[2] if len(sys.argv) > 2 else "nats://localhost:4222"

    success = await apply_upgrade(identifier, nats_url)

    if success:
        print(f"\n✓ Upgrade finished for '{identifier}'")
        sys.exit(0)
    else:
        print(f"\n✗ Failed to upgrade '{identifier}'", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
