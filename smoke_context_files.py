#!/usr/bin/env python3
"""
Context file smoke check against a running Claude UI server
Verifies the file tree loads and that recent CLI calls carry context_files/full_stdin
"""

import sys

import requests

SERVER_URL = "http://localhost:3001"


def collect_files(nodes, limit=2):
    """Return up to `limit` file paths from the tree, depth first"""
    files = []
    for node in nodes:
        if node["type"] == "file":
            files.append(node["path"])
        else:
            files.extend(collect_files(node.get("children", []), limit - len(files)))
        if len(files) >= limit:
            break
    return files[:limit]


def check_context_files(server_url):
    print(f"\n{'='*60}")
    print("Context File Smoke Check")
    print(f"{'='*60}")

    try:
        print("1. Fetching file tree...")
        response = requests.get(f"{server_url}/api/files", timeout=30)
        response.raise_for_status()
        tree = response.json()
        print(f"   ✓ File tree loaded with {len(tree['files'])} items")
        print(f"   Root: {tree['root']}")

        files = collect_files(tree["files"])
        if len(files) < 2:
            print("   ⚠ Not enough files found for testing")
            return False
        print(f"   Selected files for context: {', '.join(files)}")

        print("\n2. Checking recent CLI calls...")
        response = requests.get(f"{server_url}/api/cli-calls", params={"limit": 5}, timeout=30)
        response.raise_for_status()
        calls = response.json()
        print(f"   ✓ Found {len(calls)} recent CLI calls")

        if calls:
            last = calls[0]
            print("\n   Last CLI Call Details:")
            print(f"   - ID: {last['id']}")
            print(f"   - User Message: {last['user_message'][:50]}...")
            print(f"   - Success: {last['success']} (exit code {last['exit_code']})")
            print(f"   - Duration: {last['duration_ms']}ms")
            print(f"   - Context Files: {last['context_files'] or '(none)'}")
            print(f"   - Session: {last['cli_session_id'] or '(none)'}")
            stdin_preview = (last["full_stdin"] or "(none)")[:100]
            print(f"   - Full stdin: {stdin_preview}")

        print("\n✓ Context file infrastructure is responding")
        return True

    except requests.exceptions.Timeout:
        print("✗ Request timed out (30s)")
        return False
    except requests.exceptions.RequestException as e:
        print(f"✗ Error: {e}")
        return False


if __name__ == "__main__":
    url = sys.argv[1] if len(sys.argv) > 1 else SERVER_URL
    sys.exit(0 if check_context_files(url) else 1)
