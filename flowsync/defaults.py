"""Workflows seeded into an empty store on first run."""

from __future__ import annotations

from typing import Any, Dict, List

FIRST_WORKFLOWS: List[Dict[str, Any]] = [
    {
        "id": "getting-started",
        "name": "Getting started",
        "icon": "riCompass3Line",
        "description": "Open a page and read its title",
        "drawflow": {
            "nodes": [
                {
                    "id": "getting-started-trigger",
                    "label": "trigger",
                    "type": "BlockBasic",
                    "position": {"x": 100, "y": 300},
                    "data": {"type": "manual", "interval": 60, "delay": 5},
                },
                {
                    "id": "getting-started-tab",
                    "label": "new-tab",
                    "type": "BlockBasic",
                    "position": {"x": 350, "y": 300},
                    "data": {"url": "https://example.com", "active": True},
                },
                {
                    "id": "getting-started-text",
                    "label": "get-text",
                    "type": "BlockBasic",
                    "position": {"x": 600, "y": 300},
                    "data": {"selector": "h1", "dataColumn": "title"},
                },
            ],
            "edges": [
                {
                    "id": "getting-started-e1",
                    "source": "getting-started-trigger",
                    "target": "getting-started-tab",
                },
                {
                    "id": "getting-started-e2",
                    "source": "getting-started-tab",
                    "target": "getting-started-text",
                },
            ],
        },
        "dataColumns": [{"name": "title", "type": "string"}],
    },
    {
        "id": "scheduled-screenshot",
        "name": "Scheduled screenshot",
        "icon": "riCameraLine",
        "description": "Capture a page every hour",
        "isDisabled": True,
        "drawflow": {
            "nodes": [
                {
                    "id": "scheduled-screenshot-trigger",
                    "label": "trigger",
                    "type": "BlockBasic",
                    "position": {"x": 100, "y": 300},
                    "data": {"type": "interval", "interval": 60, "delay": 0},
                },
                {
                    "id": "scheduled-screenshot-take",
                    "label": "take-screenshot",
                    "type": "BlockBasic",
                    "position": {"x": 350, "y": 300},
                    "data": {"type": "fullpage", "saveToComputer": True},
                },
            ],
            "edges": [
                {
                    "id": "scheduled-screenshot-e1",
                    "source": "scheduled-screenshot-trigger",
                    "target": "scheduled-screenshot-take",
                }
            ],
        },
    },
]
