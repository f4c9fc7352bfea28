import json


class Telemetry:
    """Per-frame tracking records: counts, gate outcome and rejection reason."""

    def __init__(self):
        self.frames = []

    def log_frame(self, idx: int, rec: dict):
        rec["frame_idx"] = idx
        self.frames.append(rec)

    def last(self) -> dict | None:
        return self.frames[-1] if self.frames else None

    def count(self, reason: str) -> int:
        return sum(1 for r in self.frames if r.get("reason") == reason)

    def summary(self) -> dict:
        reasons: dict[str, int] = {}
        for r in self.frames:
            reasons[r.get("reason", "")] = reasons.get(r.get("reason", ""), 0) + 1
        return {
            "num_frames": len(self.frames),
            "num_keyframes": sum(1 for r in self.frames if r.get("keyframe")),
            "reasons": reasons,
        }

    def dump(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"summary": self.summary(), "frames": self.frames}, f, indent=2)
