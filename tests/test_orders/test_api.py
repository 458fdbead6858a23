"""
Integration tests for the order API endpoints.

Exercise the HTTP surface end to end: authentication, role gating,
error-to-status mapping and response shapes.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from httpx import AsyncClient

from expresskart.database.models import User, UserRole
from expresskart.services.orders.enums import OrderStatus

ORDERS_URL = "/api/v1/orders"


# ============================================================================
# Authentication Tests
# ============================================================================


class TestAuthentication:
    """Test bearer token handling on order endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token_returns_401(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{ORDERS_URL}/my")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token_returns_401(self, api_client: AsyncClient) -> None:
        response = await api_client.get(
            f"{ORDERS_URL}/my", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user_returns_403(
        self, api_client: AsyncClient, make_user, auth_headers
    ) -> None:
        inactive = await make_user(UserRole.CUSTOMER, is_active=False)

        response = await api_client.get(f"{ORDERS_URL}/my", headers=auth_headers(inactive))

        assert response.status_code == 403


# ============================================================================
# Checkout Endpoint Tests
# ============================================================================


class TestCreateOrderEndpoint:
    """Test POST /orders/."""

    @pytest.mark.asyncio
    async def test_create_order_success(
        self,
        api_client: AsyncClient,
        make_product,
        customer: User,
        vendor_user: User,
        auth_headers,
        order_payload,
    ) -> None:
        product = await make_product(vendor_user, price=Decimal("149.50"))

        response = await api_client.post(
            f"{ORDERS_URL}/",
            json=order_payload([product.id], delivery_option="express", notes="Ring twice"),
            headers=auth_headers(customer),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["order_number"].startswith("EK")
        assert data["vendor_id"] == str(vendor_user.vendor_profile.id)
        assert data["customer"]["name"] == "Asha Customer"
        assert data["delivery_address"]["postal_code"] == "560001"
        assert Decimal(data["subtotal"]) == Decimal("149.50")
        assert Decimal(data["shipping"]) == Decimal("100.00")
        assert Decimal(data["total"]) == Decimal("249.50")
        assert data["notes"] == "Ring twice"
        assert len(data["items"]) == 1

    @pytest.mark.asyncio
    async def test_vendor_cannot_order(
        self,
        api_client: AsyncClient,
        make_product,
        vendor_user: User,
        auth_headers,
        order_payload,
    ) -> None:
        product = await make_product(vendor_user)

        response = await api_client.post(
            f"{ORDERS_URL}/",
            json=order_payload([product.id]),
            headers=auth_headers(vendor_user),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_mixed_vendors_returns_400(
        self,
        api_client: AsyncClient,
        make_product,
        customer: User,
        vendor_user: User,
        other_vendor_user: User,
        auth_headers,
        order_payload,
    ) -> None:
        first = await make_product(vendor_user)
        second = await make_product(other_vendor_user)

        response = await api_client.post(
            f"{ORDERS_URL}/",
            json=order_payload([first.id, second.id]),
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_malformed_body_returns_422(
        self,
        api_client: AsyncClient,
        customer: User,
        auth_headers,
        order_payload,
    ) -> None:
        response = await api_client.post(
            f"{ORDERS_URL}/",
            json=order_payload([uuid4()], payment_method="bitcoin"),
            headers=auth_headers(customer),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Validation Error"
        assert body["details"]


# ============================================================================
# Listing Endpoint Tests
# ============================================================================


class TestListEndpoints:
    """Test the role-scoped listings."""

    @pytest.mark.asyncio
    async def test_my_orders(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        other_customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)
        await make_order(other_customer, vendor_user)

        response = await api_client.get(f"{ORDERS_URL}/my", headers=auth_headers(customer))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["skip"] == 0
        assert data["limit"] == 20
        assert data["items"][0]["id"] == str(order.id)

    @pytest.mark.asyncio
    async def test_vendor_orders_with_status_filter(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        await make_order(customer, vendor_user)
        shipped = await make_order(customer, vendor_user, status=OrderStatus.SHIPPED)

        response = await api_client.get(
            f"{ORDERS_URL}/vendor",
            params={"status": "shipped"},
            headers=auth_headers(vendor_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == str(shipped.id)

    @pytest.mark.asyncio
    async def test_vendor_listing_requires_vendor(
        self, api_client: AsyncClient, customer: User, auth_headers
    ) -> None:
        response = await api_client.get(
            f"{ORDERS_URL}/vendor", headers=auth_headers(customer)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_vendor_listing_requires_profile(
        self, api_client: AsyncClient, make_user, auth_headers
    ) -> None:
        bare_vendor = await make_user(UserRole.VENDOR)

        response = await api_client.get(
            f"{ORDERS_URL}/vendor", headers=auth_headers(bare_vendor)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Vendor profile required"

    @pytest.mark.asyncio
    async def test_admin_listing(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        other_vendor_user: User,
        admin: User,
        auth_headers,
    ) -> None:
        await make_order(customer, vendor_user)
        await make_order(customer, other_vendor_user)

        admin_response = await api_client.get(f"{ORDERS_URL}/", headers=auth_headers(admin))
        customer_response = await api_client.get(
            f"{ORDERS_URL}/", headers=auth_headers(customer)
        )

        assert admin_response.status_code == 200
        assert admin_response.json()["total"] == 2
        assert customer_response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_query_returns_422(
        self, api_client: AsyncClient, customer: User, auth_headers
    ) -> None:
        bad_status = await api_client.get(
            f"{ORDERS_URL}/my", params={"status": "lost"}, headers=auth_headers(customer)
        )
        bad_limit = await api_client.get(
            f"{ORDERS_URL}/my", params={"limit": 500}, headers=auth_headers(customer)
        )

        assert bad_status.status_code == 422
        assert bad_limit.status_code == 422

    @pytest.mark.asyncio
    async def test_statistics(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        admin: User,
        auth_headers,
    ) -> None:
        await make_order(customer, vendor_user, status=OrderStatus.DELIVERED)
        await make_order(customer, vendor_user)

        response = await api_client.get(f"{ORDERS_URL}/stats", headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["total_orders"] == 2
        assert data["status_breakdown"]["delivered"]["count"] == 1
        assert Decimal(data["total_revenue"]) == Decimal("550.00")


# ============================================================================
# Single Order Endpoint Tests
# ============================================================================


class TestOrderDetailEndpoints:
    """Test order detail, history and transition lookups."""

    @pytest.mark.asyncio
    async def test_get_order_not_found(
        self, api_client: AsyncClient, admin: User, auth_headers
    ) -> None:
        response = await api_client.get(
            f"{ORDERS_URL}/{uuid4()}", headers=auth_headers(admin)
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "ORDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_order_forbidden_for_stranger(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        other_customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.get(
            f"{ORDERS_URL}/{order.id}", headers=auth_headers(other_customer)
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_get_order_for_vendor(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.get(
            f"{ORDERS_URL}/{order.id}", headers=auth_headers(vendor_user)
        )

        assert response.status_code == 200
        assert response.json()["order_number"] == order.order_number

    @pytest.mark.asyncio
    async def test_malformed_order_id_returns_422(
        self, api_client: AsyncClient, admin: User, auth_headers
    ) -> None:
        response = await api_client.get(
            f"{ORDERS_URL}/not-a-uuid", headers=auth_headers(admin)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_history_and_transitions(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        history = await api_client.get(
            f"{ORDERS_URL}/{order.id}/history", headers=auth_headers(customer)
        )
        transitions = await api_client.get(
            f"{ORDERS_URL}/{order.id}/transitions", headers=auth_headers(vendor_user)
        )

        assert history.status_code == 200
        assert [h["to_status"] for h in history.json()] == ["pending"]
        assert transitions.status_code == 200
        assert transitions.json() == {
            "order_id": str(order.id),
            "current_status": "pending",
            "allowed_transitions": ["confirmed", "cancelled"],
        }


# ============================================================================
# Status Change Endpoint Tests
# ============================================================================


class TestUpdateStatusEndpoint:
    """Test PUT /orders/{order_id}/status."""

    @pytest.mark.asyncio
    async def test_vendor_confirms_order(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.put(
            f"{ORDERS_URL}/{order.id}/status",
            json={"status": "confirmed", "reason": "Stock reserved"},
            headers=auth_headers(vendor_user),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        history = await api_client.get(
            f"{ORDERS_URL}/{order.id}/history", headers=auth_headers(vendor_user)
        )
        last = history.json()[-1]
        assert last["from_status"] == "pending"
        assert last["to_status"] == "confirmed"
        assert last["reason"] == "Stock reserved"
        assert last["changed_by"] == str(vendor_user.id)

    @pytest.mark.asyncio
    async def test_customer_gets_403(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.put(
            f"{ORDERS_URL}/{order.id}/status",
            json={"status": "confirmed"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "Customers cannot update order status"

    @pytest.mark.asyncio
    async def test_invalid_transition_returns_409(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.put(
            f"{ORDERS_URL}/{order.id}/status",
            json={"status": "delivered"},
            headers=auth_headers(vendor_user),
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "INVALID_TRANSITION"
        assert detail["current_status"] == "pending"
        assert detail["target_status"] == "delivered"
        assert detail["allowed_transitions"] == ["cancelled", "confirmed"]

    @pytest.mark.asyncio
    async def test_concurrent_change_returns_409(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        with patch(
            "expresskart.services.orders.repository.OrderRepository.compare_and_set_status",
            new=AsyncMock(return_value=False),
        ):
            response = await api_client.put(
                f"{ORDERS_URL}/{order.id}/status",
                json={"status": "confirmed"},
                headers=auth_headers(vendor_user),
            )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "STATUS_CONFLICT"
        assert detail["order_id"] == str(order.id)
        assert detail["current_status"] == "pending"
        assert detail["target_status"] == "confirmed"

        current = await api_client.get(
            f"{ORDERS_URL}/{order.id}", headers=auth_headers(vendor_user)
        )
        assert current.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unknown_status_returns_422(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.put(
            f"{ORDERS_URL}/{order.id}/status",
            json={"status": "returned"},
            headers=auth_headers(vendor_user),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_order_returns_404(
        self, api_client: AsyncClient, admin: User, auth_headers
    ) -> None:
        response = await api_client.put(
            f"{ORDERS_URL}/{uuid4()}/status",
            json={"status": "confirmed"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404


# ============================================================================
# Cancellation Endpoint Tests
# ============================================================================


class TestCancelEndpoint:
    """Test POST /orders/{order_id}/cancel."""

    @pytest.mark.asyncio
    async def test_owner_cancels_without_body(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.post(
            f"{ORDERS_URL}/{order.id}/cancel", headers=auth_headers(customer)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_owner_cancels_with_reason(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user, status=OrderStatus.CONFIRMED)

        response = await api_client.post(
            f"{ORDERS_URL}/{order.id}/cancel",
            json={"reason": "Found it cheaper"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 200
        history = await api_client.get(
            f"{ORDERS_URL}/{order.id}/history", headers=auth_headers(customer)
        )
        assert history.json()[-1]["reason"] == "Found it cheaper"

    @pytest.mark.asyncio
    async def test_late_cancellation_returns_409(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user, status=OrderStatus.SHIPPED)

        response = await api_client.post(
            f"{ORDERS_URL}/{order.id}/cancel", headers=auth_headers(customer)
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_vendor_cannot_use_cancel_endpoint(
        self,
        api_client: AsyncClient,
        make_order,
        customer: User,
        vendor_user: User,
        auth_headers,
    ) -> None:
        order = await make_order(customer, vendor_user)

        response = await api_client.post(
            f"{ORDERS_URL}/{order.id}/cancel", headers=auth_headers(vendor_user)
        )

        assert response.status_code == 403
