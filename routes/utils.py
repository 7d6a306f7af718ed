import math
import re
from datetime import date, datetime

from flask import jsonify

# ── 検証 ──
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")


def ok(data, status=200):
    return jsonify({"ok": True, "data": data}), status


def fail(message, status, issues=None):
    body = {"ok": False, "message": message}
    if issues is not None:
        body["issues"] = issues
    return jsonify(body), status


def parse_iso_date(value):
    """'YYYY-MM-DD' または ISO 8601 日時文字列を date に変換する。不正なら None。"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _is_number(value):
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class RequestValidator:
    """リクエスト値を検証し、問題点を issues にまとめる。

    各メソッドは変換後の値 (不正なら None) を返し、エラーは蓄積するだけ。
    最後に has_errors / response() で 400 応答を組み立てる。
    """

    def __init__(self, data, coerce=False):
        self.data = data if isinstance(data, dict) else {}
        self.coerce = coerce
        self.issues = []

    @property
    def has_errors(self):
        return bool(self.issues)

    def add(self, path, message):
        if not isinstance(path, (list, tuple)):
            path = [path]
        self.issues.append({"path": list(path), "message": message})

    def response(self, message="Validation error"):
        return fail(message, 400, self.issues)

    def _raw(self, key):
        value = self.data.get(key)
        if self.coerce and isinstance(value, str):
            value = value.strip()
            if value == "":
                return None
            try:
                number = float(value)
            except ValueError:
                return value
            return int(number) if number.is_integer() else number
        return value

    def integer(self, key, required=True, minimum=None, default=None):
        value = self._raw(key)
        if value is None:
            if required:
                self.add(key, "Required")
            return default
        if not _is_number(value) or not float(value).is_integer():
            self.add(key, "Expected integer")
            return default
        value = int(value)
        if minimum is not None and value < minimum:
            self.add(key, f"Number must be greater than or equal to {minimum}")
            return default
        return value

    def positive_integer(self, key, required=True):
        return self.integer(key, required=required, minimum=1)

    def number(self, key, required=False, minimum=None, default=None):
        value = self._raw(key)
        if value is None:
            if required:
                self.add(key, "Required")
            return default
        if not _is_number(value):
            self.add(key, "Expected number")
            return default
        if minimum is not None and value < minimum:
            self.add(key, f"Number must be greater than or equal to {minimum}")
            return default
        return value

    def boolean(self, key, default=None):
        value = self.data.get(key)
        if value is None:
            return default
        if not isinstance(value, bool):
            self.add(key, "Expected boolean")
            return default
        return value

    def string(self, key, required=True, choices=None, default=None):
        value = self.data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.add(key, "Required")
            return default
        if not isinstance(value, str):
            self.add(key, "Expected string")
            return default
        value = value.strip()
        if choices is not None and value not in choices:
            self.add(key, f"Expected one of {sorted(choices)}")
            return default
        return value

    def date(self, key, required=True):
        value = self.data.get(key)
        if value is None or value == "":
            if required:
                self.add(key, "Required")
            return None
        parsed = parse_iso_date(value)
        if parsed is None:
            self.add(key, "Invalid date")
        return parsed

    def item_lines(self, key):
        """[{itemCode, amount}] 形式の明細リストを検証する"""
        value = self.data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            self.add(key, "Expected array")
            return []

        lines = []
        for index, line in enumerate(value):
            if not isinstance(line, dict):
                self.add([key, index], "Expected object")
                continue
            code = line.get("itemCode")
            amount = line.get("amount")
            if not isinstance(code, str) or not code.strip():
                self.add([key, index, "itemCode"], "Required")
                continue
            if not _is_number(amount):
                self.add([key, index, "amount"], "Expected number")
                continue
            lines.append({"itemCode": code.strip(), "amount": amount})
        return lines

    def integer_list(self, key):
        value = self.data.get(key)
        if value is None:
            return None
        if not isinstance(value, list):
            self.add(key, "Expected array")
            return None
        result = []
        for index, item in enumerate(value):
            if not _is_number(item) or not float(item).is_integer() or item < 1:
                self.add([key, index], "Expected positive integer")
                continue
            result.append(int(item))
        return result
