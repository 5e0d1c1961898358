"""
业务异常定义

每个异常带稳定的 code 和对应的 HTTP 状态码，API 层统一转换为
{"detail": ..., "code": ..., ...} 响应。
"""

from typing import Any, Dict, Optional


class FarmOfficeError(Exception):
    """业务异常基类"""

    code = "farm_office_error"
    status_code = 400

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message()
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def default_message(self) -> str:
        return "业务处理失败"

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


# ===== 到货单校验（事务开始前） =====

class DeliveryValidationError(FarmOfficeError):
    """到货单请求校验失败"""
    code = "delivery_validation_error"


class MissingWarehouse(DeliveryValidationError):
    code = "missing_warehouse"

    def default_message(self) -> str:
        return "必须选择入库仓库"


class MissingDate(DeliveryValidationError):
    code = "missing_date"

    def default_message(self) -> str:
        return "到货日期不能为空"


class EmptySelection(DeliveryValidationError):
    code = "empty_selection"

    def default_message(self) -> str:
        return "至少选择一个到货数量大于0的商品"


class QuantityExceedsPending(DeliveryValidationError):
    code = "quantity_exceeds_pending"

    def __init__(self, key: str, pending: float, requested: float):
        self.key = key
        self.pending = pending
        self.requested = requested
        super().__init__(
            f"到货数量超出待到货数量：{key} 待到货 {pending}，请求 {requested}",
            key=key, pending=pending, requested=requested,
        )


# ===== 库存 =====

class InsufficientStock(FarmOfficeError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, available: float, requested: float, product_name: str = ""):
        self.available = available
        self.requested = requested
        label = f"商品 {product_name} " if product_name else ""
        super().__init__(
            f"{label}库存不足：可用库存 {available}，需要 {requested}",
            available=available, requested=requested,
        )


# ===== 文档不存在 =====

class DocumentNotFound(FarmOfficeError):
    code = "document_not_found"
    status_code = 404
    label = "文档"

    def __init__(self, doc_id: str, message: Optional[str] = None):
        self.doc_id = doc_id
        super().__init__(message or f"{self.label}不存在: {doc_id}", id=doc_id)


class ProductNotFound(DocumentNotFound):
    code = "product_not_found"
    label = "商品"


class PurchaseNotFound(DocumentNotFound):
    code = "purchase_not_found"
    label = "采购单"


class DeliveryNotFound(DocumentNotFound):
    code = "delivery_not_found"
    label = "到货单"


class ExpenseNotFound(DocumentNotFound):
    code = "expense_not_found"
    label = "支出记录"


# ===== 状态流转 / 并发 =====

class InvalidTransition(FarmOfficeError):
    """调用方逻辑错误：在不允许的状态上执行操作"""
    code = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        extra = {"current_status": current_status} if current_status else {}
        super().__init__(message, **extra)


class TransactionConflict(FarmOfficeError):
    """乐观并发冲突，可重新执行事务体"""
    code = "transaction_conflict"
    status_code = 409

    def default_message(self) -> str:
        return "数据已被其他操作修改，请重试"
