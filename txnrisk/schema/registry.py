import logging
import re
from typing import Dict, Any, Optional, List

from txnrisk.schema.transaction import parse_timestamp

logger = logging.getLogger(__name__)

# Transaction Schema (JSON Schema format)
TRANSACTION_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "TransferRequest",
    "description": "Fund-transfer request submitted for risk scoring",
    "type": "object",
    "required": [
        "amount",
        "channel",
        "beneficiary_name",
        "beneficiary_account",
        "beneficiary_phone",
        "beneficiary_ifsc",
        "sender_account"
    ],
    "properties": {
        "id": {
            "type": "string",
            "description": "Transaction identifier assigned by the caller"
        },
        "amount": {
            "type": "number",
            "description": "Transfer amount",
            "exclusiveMinimum": 0
        },
        "channel": {
            "type": "string",
            "description": "Transfer rail",
            "enum": ["NEFT", "RTGS", "UPI"]
        },
        "beneficiary_name": {
            "type": "string",
            "description": "Beneficiary name",
            "maxLength": 255
        },
        "beneficiary_account": {
            "type": "string",
            "description": "Beneficiary account number",
            "maxLength": 20
        },
        "beneficiary_phone": {
            "type": "string",
            "description": "Beneficiary phone number",
            "maxLength": 15
        },
        "beneficiary_ifsc": {
            "type": "string",
            "description": "Beneficiary bank routing code",
            "pattern": "^[A-Z0-9]{11}$"
        },
        "sender_account": {
            "type": "string",
            "description": "Sender account number",
            "maxLength": 20
        },
        "sender_latitude": {
            "type": ["number", "null"],
            "description": "Sender latitude",
            "minimum": -90,
            "maximum": 90
        },
        "sender_longitude": {
            "type": ["number", "null"],
            "description": "Sender longitude",
            "minimum": -180,
            "maximum": 180
        },
        "created_at": {
            "type": ["string", "null"],
            "description": "ISO-8601 creation timestamp",
            "format": "date-time"
        }
    },
    "additionalProperties": True
}

# Risk Analysis Schema
RISK_ANALYSIS_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "RiskAnalysis",
    "description": "Risk verdict echoed into the persisted transaction record",
    "type": "object",
    "required": [
        "risk_score",
        "anomaly_score",
        "risk_level",
        "fraud_probability",
        "requires_review"
    ],
    "properties": {
        "risk_score": {
            "type": "number",
            "description": "Rule-based risk score (0.0 to 1.0)",
            "minimum": 0.0,
            "maximum": 1.0
        },
        "anomaly_score": {
            "type": "number",
            "description": "Outlier score (0.0 to 1.0)",
            "minimum": 0.0,
            "maximum": 1.0
        },
        "risk_level": {
            "type": "string",
            "enum": ["low", "medium", "high"]
        },
        "fraud_probability": {
            "type": "number",
            "minimum": 0.0,
            "maximum": 1.0
        },
        "requires_review": {
            "type": "boolean"
        },
        "reasons": {
            "type": "array",
            "description": "Rules that contributed to the scores"
        }
    }
}

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, (list, tuple)),
    "null": lambda v: v is None,
}

class SchemaValidator:
    def __init__(self):
        self.schemas: Dict[str, Dict[str, Any]] = {
            "transaction.v1": TRANSACTION_SCHEMA_V1,
            "risk_analysis.v1": RISK_ANALYSIS_SCHEMA_V1
        }
        self.logger = logging.getLogger(__name__)

    def register_schema(self, schema_name: str, schema: Dict[str, Any]) -> None:
        self.schemas[schema_name] = schema
        self.logger.info(f"Registered schema: {schema_name}")

    def validate(self, data: Dict[str, Any], schema_name: str) -> tuple[bool, Optional[str]]:
        if schema_name not in self.schemas:
            return False, f"Schema not found: {schema_name}"

        schema = self.schemas[schema_name]

        try:
            self._validate_object(data, schema)
            return True, None
        except ValueError as e:
            self.logger.debug(f"Validation against {schema_name} failed: {e}")
            return False, str(e)

    def _validate_object(self, data: Dict[str, Any], schema: Dict[str, Any]):
        if not isinstance(data, dict):
            raise ValueError(f"Expected object, got {type(data).__name__}")

        # Check required fields
        required = schema.get("required", [])
        for field in required:
            if field not in data:
                raise ValueError(f"Missing required field: {field}")

        # Check field types
        properties = schema.get("properties", {})
        for field, value in data.items():
            if field not in properties:
                if not schema.get("additionalProperties", True):
                    raise ValueError(f"Unexpected field: {field}")
                continue

            field_schema = properties[field]
            self._validate_field(value, field_schema, field)

    def _validate_field(self, value: Any, field_schema: Dict[str, Any], field_name: str):
        expected = field_schema.get("type")
        if expected is not None:
            allowed = expected if isinstance(expected, list) else [expected]
            if not any(_TYPE_CHECKS[t](value) for t in allowed):
                raise ValueError(f"Field {field_name} must be {' or '.join(allowed)}, got {type(value).__name__}")

        if value is None:
            return

        if isinstance(value, dict) and "properties" in field_schema:
            self._validate_object(value, field_schema)

        if "enum" in field_schema and value not in field_schema["enum"]:
            raise ValueError(f"Field {field_name} must be one of {field_schema['enum']}")

        if isinstance(value, str):
            if "pattern" in field_schema and not re.match(field_schema["pattern"], value):
                raise ValueError(f"Field {field_name} does not match pattern: {field_schema['pattern']}")
            if "maxLength" in field_schema and len(value) > field_schema["maxLength"]:
                raise ValueError(f"Field {field_name} longer than {field_schema['maxLength']}")
            if field_schema.get("format") == "date-time":
                self._validate_datetime(value, field_name)

        # Check range constraints
        if _TYPE_CHECKS["number"](value):
            if "minimum" in field_schema and value < field_schema["minimum"]:
                raise ValueError(f"Field {field_name} below minimum: {field_schema['minimum']}")
            if "maximum" in field_schema and value > field_schema["maximum"]:
                raise ValueError(f"Field {field_name} above maximum: {field_schema['maximum']}")
            if "exclusiveMinimum" in field_schema and value <= field_schema["exclusiveMinimum"]:
                raise ValueError(f"Field {field_name} must be greater than {field_schema['exclusiveMinimum']}")

    @staticmethod
    def _validate_datetime(value: str, field_name: str):
        try:
            parse_timestamp(value)
        except ValueError:
            raise ValueError(f"Field {field_name} is not an ISO-8601 timestamp") from None

    def get_schema(self, schema_name: str) -> Optional[Dict[str, Any]]:
        return self.schemas.get(schema_name)

    def list_schemas(self) -> List[str]:
        return list(self.schemas.keys())
