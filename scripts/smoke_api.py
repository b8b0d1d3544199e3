#!/usr/bin/env python3
"""
Manual smoke run against a live RetinaScan API.
Start the server first (retinascan-api), seed it (scripts/seed_demo_data.py),
then run this with the printed tokens.
"""

import json
import os

import requests

BASE_URL = os.getenv("RETINASCAN_URL", "http://localhost:8000")


def show(title, response):
    print("\n" + "=" * 50)
    print(f"CHECK: {title}")
    print("=" * 50)
    print(f"Status Code: {response.status_code}")
    try:
        body = response.json()
    except ValueError:
        body = response.text
    text = json.dumps(body, indent=2) if not isinstance(body, str) else body
    print(f"Response: {text[:1500]}")
    return body


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def check_health():
    response = requests.get(f"{BASE_URL}/health")
    show("Health Check", response)
    return response.status_code == 200


def check_no_token():
    response = requests.get(f"{BASE_URL}/api/scans")
    body = show("Scans Without Token", response)
    return response.status_code == 401 and body.get("code") == "unauthenticated"


def check_bad_token():
    response = requests.get(f"{BASE_URL}/api/scans", headers=auth("not-a-token"))
    show("Scans With Invalid Token", response)
    return response.status_code == 401


def check_me(token, label):
    response = requests.get(f"{BASE_URL}/api/auth/me", headers=auth(token))
    show(f"Current Identity ({label})", response)
    return response.status_code == 200


def check_scans(token, label):
    response = requests.get(f"{BASE_URL}/api/scans", headers=auth(token))
    body = show(f"Visible Scans ({label})", response)
    if response.status_code == 200:
        print(f"Visible scan count: {len(body)}")
    return response.status_code == 200


def check_missing_scan(token):
    response = requests.get(f"{BASE_URL}/api/scans/999999999", headers=auth(token))
    show("Unknown Scan Id", response)
    return response.status_code == 404


def check_pending(admin_token):
    response = requests.get(f"{BASE_URL}/api/admin/doctors/pending", headers=auth(admin_token))
    show("Pending Doctors (admin)", response)
    return response.status_code == 200


def main():
    print("=" * 50)
    print("RetinaScan API Smoke Run")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")
    print()

    tokens = {}
    for role in ("admin", "doctor", "patient"):
        value = input(f"Enter a {role} token (blank to skip): ").strip()
        if value:
            tokens[role] = value

    results = {}
    try:
        results["Health Check"] = check_health()
        results["No Token"] = check_no_token()
        results["Invalid Token"] = check_bad_token()
        for role, token in tokens.items():
            results[f"Me ({role})"] = check_me(token, role)
            results[f"Scans ({role})"] = check_scans(token, role)
        if "doctor" in tokens:
            results["Unknown Scan"] = check_missing_scan(tokens["doctor"])
        if "admin" in tokens:
            results["Pending Doctors"] = check_pending(tokens["admin"])
    except requests.RequestException as e:
        print(f"\n\nERROR: {e}")

    print("\n" + "=" * 50)
    print("SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    for name, ok in results.items():
        print(f"{'✓ PASS' if ok else '✗ FAIL'}: {name}")
    print(f"\nTotal: {passed}/{len(results)} checks passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
