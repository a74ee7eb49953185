# Overview: OpenAPI description of the HTTP API, assembled with apispec.

"""
API documentation.

The document is built once per app from the tables below and served by
routes/docs.py at /api-docs. Every /api/* rule registered on the app must have
an entry in PATHS (tests/test_api_docs.py checks the two stay in sync).
"""
from __future__ import annotations

from apispec import APISpec

OPENAPI_VERSION = "3.0.3"


def _ref(name: str) -> dict:
    return {"$ref": f"#/components/schemas/{name}"}


def _json(schema: dict, description: str) -> dict:
    return {"description": description, "content": {"application/json": {"schema": schema}}}


def _error(description: str) -> dict:
    return _json(_ref("Error"), description)


def _page_of(name: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "items": {"type": "array", "items": _ref(name)},
            "count": {"type": "integer"},
            "pagination": _ref("Pagination"),
        },
    }


PAGE_PARAMS = [
    {"name": "page", "in": "query", "schema": {"type": "integer", "minimum": 1}},
    {"name": "per_page", "in": "query", "schema": {"type": "integer", "minimum": 1, "maximum": 100}},
]

SCHEMAS = {
    "Error": {
        "type": "object",
        "properties": {"error": {"type": "string"}, "details": {"type": "object"}},
        "required": ["error"],
    },
    "Pagination": {
        "type": "object",
        "properties": {
            "page": {"type": "integer"},
            "per_page": {"type": "integer"},
            "total": {"type": "integer"},
            "total_pages": {"type": "integer"},
            "has_next": {"type": "boolean"},
            "has_prev": {"type": "boolean"},
        },
    },
    "ProductInput": {
        "type": "object",
        "properties": {
            "name": {"type": "string", "minLength": 2, "maxLength": 30},
            "description": {"type": "string", "minLength": 2, "maxLength": 80},
            "category": {"type": "string", "minLength": 2, "maxLength": 30},
            "brand": {"type": "string", "minLength": 2, "maxLength": 30},
            "quantity": {"type": "integer", "minimum": 0},
            "price": {"type": "number", "minimum": 0.01},
            "points_price": {"type": "integer", "minimum": 0},
        },
    },
    "Product": {
        "allOf": [
            _ref("ProductInput"),
            {"type": "object", "properties": {"id": {"type": "integer"}, "version_id": {"type": "integer"}}},
        ],
    },
    "Address": {
        "type": "object",
        "properties": {
            "first_line": {"type": "string", "minLength": 2, "maxLength": 80},
            "last_line": {"type": "string", "minLength": 2, "maxLength": 60},
            "city": {"type": "string", "minLength": 2, "maxLength": 20},
        },
    },
    "CustomerInput": {
        "type": "object",
        "properties": {
            "first_name": {"type": "string", "minLength": 2, "maxLength": 30},
            "last_name": {"type": "string", "minLength": 2, "maxLength": 50},
            "email": {"type": "string", "format": "email"},
            "address": _ref("Address"),
            "membership": {"type": "boolean"},
        },
    },
    "Customer": {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "first_name": {"type": "string"},
            "last_name": {"type": "string"},
            "email": {"type": "string"},
            "address": _ref("Address"),
            "membership_code": {"type": "string", "nullable": True},
        },
    },
    "PurchaseHistoryEntry": {
        "type": "object",
        "properties": {
            "sale_id": {"type": "string"},
            "date": {"type": "string", "format": "date"},
            "amount": {"type": "number"},
            "points_used": {"type": "integer"},
        },
    },
    "Membership": {
        "type": "object",
        "properties": {
            "code": {"type": "string", "minLength": 8, "maxLength": 8},
            "registration_date": {"type": "string", "format": "date"},
            "points": {"type": "integer", "minimum": 0},
            "active": {"type": "boolean"},
            "last_purchase": {"type": "string", "format": "date", "nullable": True},
            "purchase_history": {"type": "array", "items": _ref("PurchaseHistoryEntry")},
        },
    },
    "MembershipToggle": {
        "type": "object",
        "properties": {"customer_id": {"type": "integer", "minimum": 1}, "membership": {"type": "boolean"}},
        "required": ["customer_id", "membership"],
    },
    "CartItem": {
        "type": "object",
        "properties": {"product_id": {"type": "integer", "minimum": 1}, "quantity": {"type": "integer", "minimum": 1}},
        "required": ["product_id", "quantity"],
    },
    "SaleInput": {
        "type": "object",
        "properties": {
            "products": {"type": "array", "minItems": 1, "items": _ref("CartItem")},
            "membership_code": {"type": "string", "minLength": 8, "maxLength": 8},
        },
        "required": ["products"],
    },
    "SaleLine": {
        "type": "object",
        "properties": {
            "product_id": {"type": "integer"},
            "product_name": {"type": "string"},
            "quantity": {"type": "integer"},
            "price": {"type": "number"},
            "points": {"type": "integer"},
        },
    },
    "Sale": {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "sale_date": {"type": "string", "format": "date"},
            "kind": {"type": "string", "enum": ["CASH", "CASH_MEMBERSHIP", "POINTS"]},
            "products": {"type": "array", "items": _ref("SaleLine")},
            "total_amount": {"type": "number"},
            "membership_code": {"type": "string"},
            "points": {"type": "integer"},
            "points_used": {"type": "integer"},
            "is_cancelled": {"type": "boolean"},
        },
    },
    "Cancellation": {
        "type": "object",
        "properties": {"is_cancelled": {"type": "boolean"}},
        "required": ["is_cancelled"],
    },
}


def _id_param(name: str) -> list[dict]:
    return [{"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}]


def _code_param() -> list[dict]:
    return [{"name": "code", "in": "path", "required": True, "schema": {"type": "string"}}]


def _body(name: str) -> dict:
    return {"required": True, "content": {"application/json": {"schema": _ref(name)}}}


# path -> (path parameters, {method: operation})
PATHS = {
    "/health": ([], {
        "get": {
            "tags": ["system"],
            "summary": "Service and database health",
            "security": [],
            "responses": {"200": {"description": "Healthy"}, "503": {"description": "Database check failed"}},
        },
    }),
    "/api/products": ([], {
        "get": {
            "tags": ["products"],
            "summary": "List products",
            "parameters": PAGE_PARAMS,
            "responses": {"200": _json(_page_of("Product"), "A page of products")},
        },
        "post": {
            "tags": ["products"],
            "summary": "Create a product",
            "requestBody": _body("ProductInput"),
            "responses": {"201": _json(_ref("Product"), "Created"), "400": _error("Invalid payload")},
        },
    }),
    "/api/products/{product_id}": (_id_param("product_id"), {
        "get": {
            "tags": ["products"],
            "summary": "Get a product",
            "responses": {"200": _json(_ref("Product"), "The product"), "404": _error("Not found")},
        },
        "put": {
            "tags": ["products"],
            "summary": "Partially update a product",
            "requestBody": _body("ProductInput"),
            "responses": {
                "200": _json(_ref("Product"), "Updated"),
                "400": _error("Invalid payload"),
                "404": _error("Not found"),
            },
        },
        "delete": {
            "tags": ["products"],
            "summary": "Delete a product not referenced by an active sale",
            "responses": {
                "204": {"description": "Deleted"},
                "404": _error("Not found"),
                "409": _error("Product is part of an active sale"),
            },
        },
    }),
    "/api/customers": ([], {
        "get": {
            "tags": ["customers"],
            "summary": "List customers",
            "parameters": PAGE_PARAMS,
            "responses": {"200": _json(_page_of("Customer"), "A page of customers")},
        },
        "post": {
            "tags": ["customers"],
            "summary": "Create a customer, optionally opening a membership",
            "requestBody": _body("CustomerInput"),
            "responses": {"201": _json(_ref("Customer"), "Created"), "400": _error("Invalid payload")},
        },
    }),
    "/api/customers/{customer_id}": (_id_param("customer_id"), {
        "get": {
            "tags": ["customers"],
            "summary": "Get a customer",
            "responses": {"200": _json(_ref("Customer"), "The customer"), "404": _error("Not found")},
        },
        "put": {
            "tags": ["customers"],
            "summary": "Partially update a customer; `membership` toggles or opens a membership",
            "requestBody": _body("CustomerInput"),
            "responses": {
                "200": _json(_ref("Customer"), "Updated"),
                "400": _error("Invalid payload"),
                "404": _error("Not found"),
            },
        },
        "delete": {
            "tags": ["customers"],
            "summary": "Delete a customer and its membership",
            "responses": {"204": {"description": "Deleted"}, "404": _error("Not found")},
        },
    }),
    "/api/customers/membership/{code}": (_code_param(), {
        "get": {
            "tags": ["customers"],
            "summary": "Get the customer owning a membership code",
            "responses": {"200": _json(_ref("Customer"), "The customer"), "404": _error("Not found")},
        },
    }),
    "/api/memberships": ([], {
        "get": {
            "tags": ["memberships"],
            "summary": "List memberships",
            "parameters": PAGE_PARAMS,
            "responses": {"200": _json(_page_of("Membership"), "A page of memberships")},
        },
        "post": {
            "tags": ["memberships"],
            "summary": "Activate, deactivate or open a customer's membership",
            "requestBody": _body("MembershipToggle"),
            "responses": {"200": {"description": "Updated"}, "400": _error("Invalid payload or nothing to change")},
        },
    }),
    "/api/memberships/{code}": (_code_param(), {
        "get": {
            "tags": ["memberships"],
            "summary": "Get a membership with its purchase history",
            "responses": {"200": _json(_ref("Membership"), "The membership"), "404": _error("Not found")},
        },
    }),
    "/api/sales": ([], {
        "get": {
            "tags": ["sales"],
            "summary": "List sales, newest first",
            "parameters": PAGE_PARAMS,
            "responses": {"200": _json(_page_of("Sale"), "A page of sales")},
        },
        "post": {
            "tags": ["sales"],
            "summary": "Cash sale; with a membership code it earns floor(total / 10) points",
            "requestBody": _body("SaleInput"),
            "responses": {
                "201": _json(_ref("Sale"), "The stored sale"),
                "400": _error("Invalid payload"),
                "500": _error("Rolled back"),
            },
        },
    }),
    "/api/sales/points": ([], {
        "post": {
            "tags": ["sales"],
            "summary": "Sale paid with membership points",
            "requestBody": _body("SaleInput"),
            "responses": {
                "201": _json(_ref("Sale"), "The stored sale"),
                "400": _error("Invalid payload or not enough points"),
                "500": _error("Rolled back"),
            },
        },
    }),
    "/api/sales/{sale_id}": (_id_param("sale_id"), {
        "get": {
            "tags": ["sales"],
            "summary": "Get a sale",
            "responses": {"200": _json(_ref("Sale"), "The sale"), "404": _error("Not found")},
        },
        "put": {
            "tags": ["sales"],
            "summary": "Cancel a sale and reverse its stock and membership effects",
            "requestBody": _body("Cancellation"),
            "responses": {
                "200": {"description": "Cancelled"},
                "400": _error("Invalid transition"),
                "404": _error("Not found"),
                "500": _error("Rolled back"),
            },
        },
    }),
}


def build_openapi_spec(version: str = "0.1.0") -> APISpec:
    spec = APISpec(
        title="storeapi",
        version=version,
        openapi_version=OPENAPI_VERSION,
        info={"description": "Catalog, customers, loyalty memberships and sale processing."},
        security=[{"bearerAuth": []}],
    )
    spec.components.security_scheme("bearerAuth", {"type": "http", "scheme": "bearer"})

    for name, schema in SCHEMAS.items():
        spec.components.schema(name, schema)

    for path, (parameters, operations) in PATHS.items():
        spec.path(path=path, parameters=parameters, operations=operations)

    return spec
