# inventory_pulse/sync/queries.py
"""GraphQL documents used by the catalog sync."""
from __future__ import annotations

PAGE_INFO = "pageInfo { hasNextPage endCursor }"

INVENTORY_LEVEL_FIELDS = """
  edges { node { quantities(names: ["available"]) { name quantity } location { id } } }
  """ + PAGE_INFO

VARIANT_FIELDS = """
  id title sku price inventoryQuantity
  inventoryItem {
    id
    inventoryLevels(first: $levelCount) {
      """ + INVENTORY_LEVEL_FIELDS + """
    }
  }
"""

LOCATIONS_QUERY = """
query GetLocations($first: Int!, $cursor: String) {
  locations(first: $first, after: $cursor) {
    edges { node { id name } }
    """ + PAGE_INFO + """
  }
}
"""

PRODUCTS_QUERY = """
query GetProducts($first: Int!, $cursor: String, $variantCount: Int!, $levelCount: Int!) {
  products(first: $first, after: $cursor) {
    edges {
      node {
        id title vendor productType tags
        variants(first: $variantCount) {
          edges { node { """ + VARIANT_FIELDS + """ } }
          """ + PAGE_INFO + """
        }
      }
    }
    """ + PAGE_INFO + """
  }
}
"""

# Follow-up pages when a product has more variants than fit inline
PRODUCT_VARIANTS_QUERY = """
query GetProductVariants($productId: ID!, $first: Int!, $cursor: String, $levelCount: Int!) {
  product(id: $productId) {
    variants(first: $first, after: $cursor) {
      edges { node { """ + VARIANT_FIELDS + """ } }
      """ + PAGE_INFO + """
    }
  }
}
"""

# Follow-up pages when an inventory item is stocked at more locations than fit inline
INVENTORY_LEVELS_QUERY = """
query GetInventoryLevels($inventoryItemId: ID!, $first: Int!, $cursor: String) {
  inventoryItem(id: $inventoryItemId) {
    inventoryLevels(first: $first, after: $cursor) {
      """ + INVENTORY_LEVEL_FIELDS + """
    }
  }
}
"""

INVENTORY_SET_ON_HAND_MUTATION = """
mutation inventorySetOnHandQuantities($input: InventorySetOnHandQuantitiesInput!) {
  inventorySetOnHandQuantities(input: $input) {
    inventoryAdjustmentGroup { id }
    userErrors { field message }
  }
}
"""
