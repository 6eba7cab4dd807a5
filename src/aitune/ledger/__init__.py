# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from aitune.ledger.ledger import LEDGER_COLUMNS, LedgerRow, PairKey, ResultsLedger

__all__ = ["LEDGER_COLUMNS", "LedgerRow", "PairKey", "ResultsLedger"]
