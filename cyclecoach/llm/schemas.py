"""LLM response schemas for structured output."""

SPLIT_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "split_type": {"type": "string"},
        "cycle_days": {"type": "integer", "minimum": 1},
        "sessions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "day": {"type": "integer"},
                    "name": {"type": "string"},
                    "focus": {"type": "array", "items": {"type": "string"}},
                    "targetVolume": {
                        "type": "object",
                        "additionalProperties": {"type": "number"}
                    }
                },
                "required": ["day", "name", "targetVolume"]
            }
        }
    },
    "required": ["name", "cycle_days", "sessions"]
}

WORKOUT_SCHEMA = {
    "type": "object",
    "properties": {
        "workout_name": {"type": "string"},
        "exercises": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "exerciseName": {"type": "string"},
                    "sets": {"type": "integer"},
                    "reps": {"type": "string"},
                    "rest_seconds": {"type": "integer"},
                    "primaryMuscles": {"type": "array", "items": {"type": "string"}},
                    "secondaryMuscles": {"type": "array", "items": {"type": "string"}},
                    "notes": {"type": "string"}
                },
                "required": ["exerciseName", "sets", "primaryMuscles"]
            }
        }
    },
    "required": ["workout_name", "exercises"]
}
