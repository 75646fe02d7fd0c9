"""Remote engine delegating to a hosted Supabase project.

Each operation is one request through the Supabase async client: auth calls
go to the auth API, everything else to PostgREST tables, views and database
functions. Uniqueness, ownership and the order-placement cascade are enforced
server-side by the schema in `database.schema`, not here.
"""
import logging
from typing import Any, Awaitable, Dict, List, Optional, Union

from supabase import AsyncClient, acreate_client

from ..exceptions import (
    DatabaseError,
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    DuplicateReviewError,
    InsufficientInventoryError,
    EmptyCartError,
    OperationNotSupportedError,
    RemoteServiceError
)
from ..models import (
    Author,
    CartItem,
    CartLine,
    Order,
    OrderCreate,
    OrderDetail,
    Product,
    ProductCreate,
    ProductUpdate,
    PublicUser,
    Review,
    ReviewCreate,
    ReviewWithAuthor,
    Seller,
    SellerCreate,
    SellerStatus,
    Session,
    check_quantity,
    check_seller_status,
    coerce,
    utcnow
)
from ..result import returns_result

logger = logging.getLogger(__name__)

# Error codes reported by the auth API and PostgREST
USER_EXISTS_CODES = {'user_already_exists', 'email_exists'}
INVALID_CREDENTIALS_CODES = {'invalid_credentials'}
UNIQUE_VIOLATION = '23505'
FUNCTION_NOT_FOUND = 'PGRST202'
# Raised by the place_order database function
EMPTY_CART = 'BL001'
INSUFFICIENT_INVENTORY = 'BL002'

def first(data: Any) -> Optional[Dict[str, Any]]:
    """First row of a PostgREST payload (list of rows or a single object)."""
    if isinstance(data, list):
        return data[0] if data else None
    return data or None

def to_public_user(user: Any) -> PublicUser:
    return PublicUser(
        id=str(user.id),
        email=user.email or '',
        created_at=user.created_at,
        user_metadata=user.user_metadata or {}
    )

def ilike_term(query: str) -> str:
    """Pattern for a PostgREST `or` filter; commas and parentheses would split it."""
    cleaned = ''.join(ch for ch in query if ch not in ',()')
    return f"*{cleaned}*"

class RemoteEngine:
    """Domain operations against Supabase."""

    name = 'supabase'

    def __init__(self, url: str, key: str, client: Optional[AsyncClient] = None) -> None:
        """Initialize remote engine.

        Args:
            url: Supabase project URL
            key: Supabase anon key
            client: Optional pre-built client. If not provided, one is created on init.

        Raises:
            RemoteServiceError: If the URL or key is malformed
        """
        if not url or not url.startswith(('http://', 'https://')):
            raise RemoteServiceError(f"Invalid Supabase URL: {url!r}")
        if not key or not key.strip():
            raise RemoteServiceError("Supabase key is empty")
        self.url = url
        self.key = key
        self.client = client
        self.connected = False

    def is_using_remote(self) -> bool:
        return True

    async def init(self) -> None:
        """Create the client and check the service answers.

        Raises:
            RemoteServiceError: If the service is unreachable or rejects the configuration
        """
        if self.connected:
            return

        try:
            if self.client is None:
                self.client = await acreate_client(self.url, self.key)
            # Lightweight round trip; fails fast on a bad URL or key
            await self.client.auth.get_session()
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            raise RemoteServiceError(f"Failed to connect to Supabase at {self.url}: {str(e)}", cause=e)

        self.connected = True
        logger.info("Supabase connection successful")

    async def ensure_client(self) -> AsyncClient:
        """Ensure the client is connected."""
        if not self.connected:
            await self.init()
        return self.client

    async def close(self) -> None:
        self.connected = False

    def _translate(self, error: Exception) -> DatabaseError:
        """Map a client exception onto the error taxonomy."""
        code = str(getattr(error, 'code', '') or '')
        message = str(getattr(error, 'message', None) or error)

        if code in USER_EXISTS_CODES:
            return DuplicateUserError("User with this email already exists")
        if code in INVALID_CREDENTIALS_CODES:
            return InvalidCredentialsError("Invalid login credentials")
        if code == FUNCTION_NOT_FOUND:
            return OperationNotSupportedError(f"Supabase project is missing a database function: {message}")
        if code == EMPTY_CART:
            return EmptyCartError(message)
        if code == INSUFFICIENT_INVENTORY:
            # place_order reports the product in DETAIL and "available/requested" in HINT
            available, _, requested = str(getattr(error, 'hint', '') or '0/0').partition('/')
            return InsufficientInventoryError(
                str(getattr(error, 'details', '') or ''),
                int(available or 0),
                int(requested or 0)
            )

        logger.error(f"Supabase request failed [{code or 'no code'}]: {message}")
        return RemoteServiceError(f"Supabase request failed: {message}", cause=error, code=code or None)

    async def _run(self, request: Awaitable[Any]) -> Any:
        try:
            return await request
        except DatabaseError:
            raise
        except Exception as e:
            raise self._translate(e) from e

    async def _rows(self, query: Any) -> Any:
        """Execute a PostgREST query and return its payload."""
        response = await self._run(query.execute())
        return response.data

    # Session

    @returns_result
    async def get_session(self) -> Optional[Session]:
        client = await self.ensure_client()
        session = await self._run(client.auth.get_session())
        if session is None or session.user is None:
            return None
        return Session(user=to_public_user(session.user))

    @returns_result
    async def sign_in(self, email: str, password: str) -> PublicUser:
        client = await self.ensure_client()
        response = await self._run(client.auth.sign_in_with_password({
            'email': email,
            'password': password
        }))
        if response.user is None:
            raise InvalidCredentialsError("Invalid login credentials")
        return to_public_user(response.user)

    @returns_result
    async def sign_up(
        self,
        email: str,
        password: str,
        user_metadata: Optional[Dict[str, Any]] = None
    ) -> PublicUser:
        client = await self.ensure_client()
        response = await self._run(client.auth.sign_up({
            'email': email,
            'password': password,
            'options': {'data': user_metadata or {}}
        }))
        user = response.user
        # With email confirmation on, an existing address comes back with no identities
        if user is None or getattr(user, 'identities', None) == []:
            raise DuplicateUserError("User with this email already exists")
        return to_public_user(user)

    @returns_result
    async def sign_out(self) -> None:
        client = await self.ensure_client()
        await self._run(client.auth.sign_out())

    # Sellers

    @returns_result
    async def get_seller_profile(self, user_id: str) -> Optional[Seller]:
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('sellers').select('*').eq('user_id', user_id).limit(1)
        ))
        return Seller.model_validate(row) if row else None

    @returns_result
    async def create_seller_profile(
        self,
        seller_data: Union[SellerCreate, Dict[str, Any]]
    ) -> Seller:
        data = coerce(SellerCreate, seller_data)
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('sellers').insert(data.model_dump(mode='json'))
        ))
        return Seller.model_validate(row)

    @returns_result
    async def update_seller_status(
        self,
        seller_id: str,
        status: Union[SellerStatus, str]
    ) -> Seller:
        status = check_seller_status(status)
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('sellers')
            .update({'status': status.value, 'updated_at': utcnow().isoformat()})
            .eq('id', seller_id)
        ))
        if not row:
            raise NotFoundError('Seller', seller_id)
        return Seller.model_validate(row)

    # Products

    @returns_result
    async def create_product(
        self,
        product: Union[ProductCreate, Dict[str, Any]]
    ) -> Product:
        data = coerce(ProductCreate, product)
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('products').insert(data.model_dump(mode='json'))
        ))
        return Product.model_validate(row)

    @returns_result
    async def get_seller_products(self, seller_id: str) -> List[Product]:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('products').select('*')
            .eq('seller_id', seller_id)
            .order('created_at', desc=True)
        )
        return [Product.model_validate(r) for r in rows]

    @returns_result
    async def update_product(
        self,
        product: Union[ProductUpdate, Dict[str, Any]]
    ) -> Product:
        update = coerce(ProductUpdate, product)
        changes = update.model_dump(mode='json', exclude={'id'}, exclude_none=True)
        changes['updated_at'] = utcnow().isoformat()
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('products').update(changes).eq('id', update.id)
        ))
        if not row:
            raise NotFoundError('Product', update.id)
        return Product.model_validate(row)

    @returns_result
    async def delete_product(self, product_id: str) -> None:
        client = await self.ensure_client()
        rows = await self._rows(client.table('products').delete().eq('id', product_id))
        if not rows:
            raise NotFoundError('Product', product_id)

    @returns_result
    async def get_products(self) -> List[Product]:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('products').select('*').order('created_at', desc=True)
        )
        return [Product.model_validate(r) for r in rows]

    @returns_result
    async def get_product_by_id(self, product_id: str) -> Product:
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('products').select('*').eq('id', product_id).limit(1)
        ))
        if not row:
            raise NotFoundError('Product', product_id)
        return Product.model_validate(row)

    @returns_result
    async def search_products(
        self,
        query: str,
        category: Optional[str] = None
    ) -> List[Product]:
        client = await self.ensure_client()
        term = ilike_term(query)
        request = (
            client.table('products').select('*')
            .or_(f"title.ilike.{term},description.ilike.{term}")
        )
        if category:
            request = request.eq('category', category)
        rows = await self._rows(request.order('created_at', desc=True))
        return [Product.model_validate(r) for r in rows]

    # Cart

    @returns_result
    async def add_to_cart(self, user_id: str, product_id: str, quantity: int) -> CartItem:
        check_quantity(quantity)
        client = await self.ensure_client()
        row = first(await self._rows(client.rpc('add_to_cart', {
            'p_user_id': user_id,
            'p_product_id': product_id,
            'p_quantity': quantity
        })))
        return CartItem.model_validate(row)

    @returns_result
    async def get_cart(self, user_id: str) -> List[CartLine]:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('cart_items').select('*, product:products(*)')
            .eq('user_id', user_id)
            .order('created_at')
        )
        return [CartLine.model_validate(r) for r in rows]

    @returns_result
    async def update_cart_item(self, user_id: str, product_id: str, quantity: int) -> CartItem:
        check_quantity(quantity)
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('cart_items').update({'quantity': quantity})
            .eq('user_id', user_id)
            .eq('product_id', product_id)
        ))
        if not row:
            raise NotFoundError('Cart item', product_id)
        return CartItem.model_validate(row)

    @returns_result
    async def remove_cart_item(self, user_id: str, product_id: str) -> None:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('cart_items').delete()
            .eq('user_id', user_id)
            .eq('product_id', product_id)
        )
        if not rows:
            raise NotFoundError('Cart item', product_id)

    # Orders

    @returns_result
    async def create_order(
        self,
        user_id: str,
        order_data: Union[OrderCreate, Dict[str, Any], None] = None
    ) -> Order:
        data = coerce(OrderCreate, order_data or {})
        client = await self.ensure_client()
        row = first(await self._rows(client.rpc('place_order', {
            'p_user_id': user_id,
            'p_shipping_address': data.shipping_address
        })))
        order = Order.model_validate(row)
        logger.info(f"Order {order.id} placed for user {user_id}, total {order.total}")
        return order

    @returns_result
    async def get_orders(self, user_id: str) -> List[Order]:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('orders').select('*')
            .eq('user_id', user_id)
            .order('created_at', desc=True)
        )
        return [Order.model_validate(r) for r in rows]

    @returns_result
    async def get_order_by_id(self, order_id: str) -> OrderDetail:
        client = await self.ensure_client()
        row = first(await self._rows(
            client.table('orders').select('*, items:order_items(*, product:products(*))')
            .eq('id', order_id)
            .limit(1)
        ))
        if not row:
            raise NotFoundError('Order', order_id)
        return OrderDetail.model_validate(row)

    # Reviews

    @returns_result
    async def add_review(
        self,
        user_id: str,
        product_id: str,
        review: Union[ReviewCreate, Dict[str, Any]]
    ) -> Review:
        data = coerce(ReviewCreate, review)
        client = await self.ensure_client()
        try:
            row = first(await self._rows(client.table('reviews').insert({
                'user_id': user_id,
                'product_id': product_id,
                **data.model_dump(mode='json')
            })))
        except RemoteServiceError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateReviewError("You have already reviewed this product") from e
            raise
        return Review.model_validate(row)

    @returns_result
    async def get_product_reviews(self, product_id: str) -> List[ReviewWithAuthor]:
        client = await self.ensure_client()
        rows = await self._rows(
            client.table('product_reviews').select('*')
            .eq('product_id', product_id)
            .order('created_at')
        )
        reviews = []
        for row in rows:
            email = row.get('author_email')
            author = Author(id=row['user_id'], email=email) if email else None
            reviews.append(ReviewWithAuthor(**Review.model_validate(row).model_dump(), user=author))
        return reviews
