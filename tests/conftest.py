"""Shared fixtures: a small Express/mongoose project on disk."""

from pathlib import Path
from textwrap import dedent

import pytest
import structlog

from factscan import logging_config

ORDER_ROUTES = dedent(
    """\
    const express = require('express');
    const Joi = require('joi');
    const { celebrate } = require('celebrate');
    const { jwtAuth, requireRole } = require('../middleware/auth');
    const { requirePermission } = require('../middleware/perms');

    const router = express.Router();

    /**
     * @swagger
     * /orders:
     *   post:
     *     summary: Create a new order
     *     requestBody:
     *       required: true
     *       content:
     *         application/json:
     *           schema:
     *             properties:
     *               userId: { type: string }
     *               items: { type: array }
     *     responses:
     *       200:
     *         content:
     *           application/json:
     *             schema:
     *               properties:
     *                 orderId: { type: string }
     *                 status: { type: string }
     *                 totalAmount: { type: number }
     */
    router.post('/orders',
      jwtAuth(),
      celebrate({
        body: Joi.object({
          userId: Joi.string().required(),
          items: Joi.array().items(
            Joi.object({
              productId: Joi.string().required(),
              quantity: Joi.number().min(1).required()
            })
          ).min(1).required(),
          currency: Joi.string().valid('USD', 'EUR').default('USD'),
          notes: Joi.string().max(500)
        })
      }),
      async (req, res) => {
        const { userId, items, currency, notes } = req.body;
        try {
          const order = await orderService.createOrder({ userId, items });
          res.json({
            orderId: order.orderId,
            status: order.status,
            createdAt: order.createdAt
          });
        } catch (error) {
          res.status(400).json({ error: error.message });
        }
      }
    );

    // User's own orders
    router.get('/orders/my',
      jwtAuth(),
      async (req, res) => {
        const orders = await orderService.getUserOrders(req.user.id);
        res.json({ orders });
      }
    );

    router.get('/orders/:orderId',
      jwtAuth(),
      async (req, res) => {
        const order = await orderService.getOrderById(req.params.orderId);
        res.json({ order });
      }
    );

    router.patch('/orders/:orderId/status',
      jwtAuth(),
      requireRole('admin', 'order_manager'),
      async (req, res) => {
        const { status, reason } = req.body;
        res.json({ order: await orderService.update(status, reason) });
      }
    );

    router.get('/admin/orders',
      jwtAuth(),
      requireRole('admin'),
      async (req, res) => {
        res.json({ orders: [], total: 0 });
      }
    );

    router.get('/admin/orders/analytics',
      jwtAuth(),
      requirePermission('view_analytics'),
      async (req, res) => {
        res.json({ analytics: {} });
      }
    );

    module.exports = router;
    """
)

ORDER_MODEL = dedent(
    """\
    const mongoose = require('mongoose');

    const OrderSchema = new mongoose.Schema({
      orderId: {
        type: String,
        required: true,
        unique: true
      },
      userId: {
        type: mongoose.Schema.Types.ObjectId,
        required: true,
        ref: 'User'
      },
      totalAmount: {
        type: Number,
        required: true,
        min: 0,
        default: 0
      },
      status: {
        type: String,
        enum: ['pending', 'paid', 'cancelled'],
        default: 'pending'
      },
      shippingAddress: {
        street: { type: String, required: true },
        city: { type: String, required: true }
      },
      items: [{
        productId: { type: mongoose.Schema.Types.ObjectId, ref: 'Product' },
        quantity: { type: Number, required: true, min: 1 }
      }],
      notes: String,
      createdAt: {
        type: Date,
        default: Date.now
      }
    }, {
      timestamps: true
    });

    OrderSchema.index({ userId: 1, status: 1 });

    module.exports = mongoose.model('Order', OrderSchema);
    """
)

ORDER_SERVICE = dedent(
    """\
    import { PaymentService } from './PaymentService.js';
    import { NotificationService } from './NotificationService.js';
    import { AuditService } from './AuditService.js';

    export class OrderService {
      constructor(paymentService, notificationService, auditService) {
        this.paymentService = paymentService;
        this.notificationService = notificationService;
        this.auditService = auditService;
      }

      async createOrder(orderData) {
        try {
          // Validate input data
          this.validateOrderData(orderData);
          const totalAmount = this.calculateTotal(orderData.items);
          const payment = await this.paymentService.processPayment({
            amount: totalAmount,
            userId: orderData.userId
          });
          const order = await this.saveOrder({ ...orderData, totalAmount });
          await this.notificationService.sendOrderConfirmation(order);
          return order;
        } catch (error) {
          await this.auditService.logOrderError(error, orderData);
          throw error;
        }
      }

      async updateOrderStatus(orderId, newStatus) {
        const order = await this.findOrderById(orderId);
        order.status = newStatus;
        await this.notificationService.sendStatusUpdate(order);
        return order;
      }

      calculateTotal(items) {
        return items.reduce((total, item) => total + item.price, 0);
      }
    }
    """
)

PAYMENT_SERVICE = dedent(
    """\
    const axios = require('axios');

    class PaymentService {
      async processPayment(details) {
        const response = await axios.post('https://pay.example.com', details);
        return response.data;
      }
    }

    module.exports = PaymentService;
    """
)

DATE_UTILS = dedent(
    """\
    function formatDate(date) {
      return date.toISOString();
    }

    const parseDate = (value) => new Date(value);

    exports.toEpoch = (date) => date.getTime();
    """
)

PACKAGE_JSON = """{
  "name": "shop",
  "dependencies": {
    "express": "^4.18.2",
    "mongoose": "^7.0.0",
    "joi": "^17.9.0",
    "celebrate": "^15.0.0",
    "jsonwebtoken": "^9.0.0"
  },
  "devDependencies": {
    "jest": "^29.0.0"
  }
}
"""


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small Express project with routes, a model and two services."""
    return write_tree(
        tmp_path / "shop",
        {
            "package.json": PACKAGE_JSON,
            "src/routes/orderRoutes.js": ORDER_ROUTES,
            "src/models/Order.js": ORDER_MODEL,
            "src/services/OrderService.js": ORDER_SERVICE,
            "src/services/PaymentService.js": PAYMENT_SERVICE,
            "src/utils/dateUtils.js": DATE_UTILS,
            "node_modules/express/lib/router.js": "router.get('/x', h);",
            "src/__tests__/orderRoutes.test.js": "router.get('/t', h);",
        },
    )


@pytest.fixture(autouse=True)
def reset_logging(monkeypatch: pytest.MonkeyPatch):
    """Let each test configure logging against its own captured streams."""
    monkeypatch.setattr(logging_config, "_configured", False)
    yield
    structlog.reset_defaults()
