"""サービス層の例外 (ルート側で HTTP ステータスに変換する)"""


class EmployeeNotFoundError(LookupError):
    def __init__(self, employee_id):
        super().__init__(f"Employee {employee_id} not found")
        self.employee_id = employee_id


class ResidentTaxCsvError(ValueError):
    """住民税 CSV の形式エラー。row は 1 始まりのデータ行番号 (ヘッダーなら None)。"""

    def __init__(self, message, row=None):
        super().__init__(message)
        self.row = row


class PayrollInputError(ValueError):
    """計算入力の不備。field はリクエスト上の項目名。"""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field
