#!/usr/bin/env python3
"""
Check the running API and its upstreams.
Usage: python check_connections.py [base_url]
"""
import os
import sys

import requests

API_URL = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("SOYUZNIK_API_URL", "http://localhost:3000")
TELEGRAM_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")


def check(name, func):
    try:
        ok, detail = func()
    except requests.RequestException as e:
        ok, detail = False, str(e)
    print(f"{'OK  ' if ok else 'FAIL'} {name}: {detail}")
    return ok


def api_status():
    resp = requests.get(f"{API_URL}/status", timeout=15)
    data = resp.json()
    return resp.status_code == 200 and data.get("telegram") and data.get("database"), data


def telegram_me():
    data = requests.get(f"https://api.telegram.org/bot{TELEGRAM_TOKEN}/getMe", timeout=15).json()
    return data.get("ok", False), data.get("result", {}).get("username")


def openai_models():
    resp = requests.get(
        "https://api.openai.com/v1/models",
        headers={"Authorization": f"Bearer {OPENAI_API_KEY}"},
        timeout=15,
    )
    return resp.status_code == 200, resp.status_code


def main():
    results = [check("API /status", api_status)]
    if TELEGRAM_TOKEN:
        results.append(check("Telegram getMe", telegram_me))
    if OPENAI_API_KEY:
        results.append(check("OpenAI", openai_models))
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
