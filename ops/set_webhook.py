#!/usr/bin/env python3
"""
Register, inspect or remove the chatbot webhook.
Usage: python set_webhook.py [set|info|delete]
"""
import os
import sys

import requests

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "")
API = f"https://api.telegram.org/bot{TELEGRAM_TOKEN}"


def main():
    if not TELEGRAM_TOKEN:
        print("TELEGRAM_BOT_TOKEN is not set")
        sys.exit(1)

    action = sys.argv[1] if len(sys.argv) > 1 else "info"

    if action == "set":
        if not PUBLIC_BASE_URL:
            print("PUBLIC_BASE_URL is not set")
            sys.exit(1)
        url = f"{PUBLIC_BASE_URL.rstrip('/')}/telegram-webhook"
        resp = requests.post(f"{API}/setWebhook", json={"url": url, "allowed_updates": ["message"]}, timeout=30)
        print(f"setWebhook {url}: {resp.json()}")
    elif action == "delete":
        resp = requests.post(f"{API}/deleteWebhook", json={"drop_pending_updates": False}, timeout=30)
        print(f"deleteWebhook: {resp.json()}")
    else:
        info = requests.get(f"{API}/getWebhookInfo", timeout=30).json().get("result", {})
        print(f"URL: {info.get('url') or '-'}")
        print(f"Pending updates: {info.get('pending_update_count')}")
        if info.get("last_error_message"):
            print(f"Last error: {info['last_error_message']}")


if __name__ == "__main__":
    main()
