"""Schema v2 - Carts, orders and reviews.

This version adds:
- Cart items, unique per (user, product)
- Orders with line items carrying the unit price at order time
- Cart and order rows that outlive their product (product_id set to NULL)
- Reviews, unique per (user, product), and a view joining review authors
- add_to_cart / place_order functions so each is a single request
"""

schema = {
    'version': 2,
    'tables': [
        {
            'name': 'cart_items',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'product_id', 'type': 'UUID'},
                {'name': 'quantity', 'type': 'INTEGER', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'quantity >= 1'
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'auth.users(id)', 'on_delete': 'CASCADE'},
                {'columns': ['product_id'], 'references': 'products(id)', 'on_delete': 'SET NULL'}
            ],
            'indexes': [
                {'name': 'cart_items_user_product_idx', 'columns': ['user_id', 'product_id'], 'unique': True}
            ]
        },
        {
            'name': 'orders',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'total', 'type': 'DECIMAL(12,2)', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'shipping_address', 'type': 'TEXT', 'nullable': False, 'default': "''"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'total >= 0',
                "status IN ('pending', 'processing', 'completed', 'cancelled')"
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'auth.users(id)'}
            ],
            'indexes': [
                {'name': 'orders_user_id_idx', 'columns': ['user_id']},
                {'name': 'orders_created_at_idx', 'columns': ['created_at DESC']}
            ]
        },
        {
            'name': 'order_items',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'order_id', 'type': 'UUID', 'nullable': False},
                {'name': 'product_id', 'type': 'UUID'},
                {'name': 'quantity', 'type': 'INTEGER', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL(10,2)', 'nullable': False}
            ],
            'checks': [
                'quantity >= 1',
                'price >= 0'
            ],
            'foreign_keys': [
                {'columns': ['order_id'], 'references': 'orders(id)', 'on_delete': 'CASCADE'},
                {'columns': ['product_id'], 'references': 'products(id)', 'on_delete': 'SET NULL'}
            ],
            'indexes': [
                {'name': 'order_items_order_id_idx', 'columns': ['order_id']}
            ]
        },
        {
            'name': 'reviews',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'product_id', 'type': 'UUID', 'nullable': False},
                {'name': 'rating', 'type': 'INTEGER', 'nullable': False},
                {'name': 'comment', 'type': 'TEXT', 'nullable': False, 'default': "''"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                'rating BETWEEN 1 AND 5'
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'auth.users(id)', 'on_delete': 'CASCADE'},
                {'columns': ['product_id'], 'references': 'products(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'reviews_user_product_idx', 'columns': ['user_id', 'product_id'], 'unique': True},
                {'name': 'reviews_product_id_idx', 'columns': ['product_id']}
            ]
        }
    ],
    'migrations': [
        # Authors expose id and email only
        '''
        CREATE VIEW product_reviews AS
            SELECT r.*, u.email AS author_email
            FROM reviews r
            LEFT JOIN auth.users u ON u.id = r.user_id
        ''',
        '''
        CREATE FUNCTION add_to_cart(p_user_id UUID, p_product_id UUID, p_quantity INTEGER)
        RETURNS cart_items
        LANGUAGE sql
        AS $$
            INSERT INTO cart_items (user_id, product_id, quantity)
            VALUES (p_user_id, p_product_id, p_quantity)
            ON CONFLICT (user_id, product_id)
            DO UPDATE SET quantity = cart_items.quantity + EXCLUDED.quantity
            RETURNING *;
        $$
        ''',
        '''
        CREATE FUNCTION place_order(p_user_id UUID, p_shipping_address TEXT)
        RETURNS orders
        LANGUAGE plpgsql
        SECURITY DEFINER
        SET search_path = public
        AS $$
        DECLARE
            v_order orders;
            v_total DECIMAL(12,2) := 0;
            v_line RECORD;
        BEGIN
            IF p_user_id IS DISTINCT FROM auth.uid() THEN
                RAISE EXCEPTION 'orders can only be placed for the signed-in user'
                    USING ERRCODE = '42501';
            END IF;

            FOR v_line IN
                SELECT c.product_id, c.quantity, p.price, p.inventory
                FROM cart_items c
                JOIN products p ON p.id = c.product_id
                WHERE c.user_id = p_user_id
                FOR UPDATE OF p
            LOOP
                IF v_line.inventory < v_line.quantity THEN
                    RAISE EXCEPTION 'insufficient inventory for product %', v_line.product_id
                        USING ERRCODE = 'BL002',
                              DETAIL = v_line.product_id::text,
                              HINT = v_line.inventory || '/' || v_line.quantity;
                END IF;
                v_total := v_total + v_line.price * v_line.quantity;
            END LOOP;

            IF NOT EXISTS (
                SELECT 1 FROM cart_items c
                JOIN products p ON p.id = c.product_id
                WHERE c.user_id = p_user_id
            ) THEN
                RAISE EXCEPTION 'cart for user % has no orderable items', p_user_id
                    USING ERRCODE = 'BL001';
            END IF;

            INSERT INTO orders (user_id, total, status, shipping_address)
            VALUES (p_user_id, v_total, 'pending', p_shipping_address)
            RETURNING * INTO v_order;

            INSERT INTO order_items (order_id, product_id, quantity, price)
            SELECT v_order.id, c.product_id, c.quantity, p.price
            FROM cart_items c
            JOIN products p ON p.id = c.product_id
            WHERE c.user_id = p_user_id;

            UPDATE products p
            SET inventory = p.inventory - c.quantity
            FROM cart_items c
            WHERE c.user_id = p_user_id AND c.product_id = p.id;

            DELETE FROM cart_items WHERE user_id = p_user_id;

            RETURN v_order;
        END;
        $$
        ''',
        'ALTER TABLE cart_items ENABLE ROW LEVEL SECURITY',
        'ALTER TABLE orders ENABLE ROW LEVEL SECURITY',
        'ALTER TABLE order_items ENABLE ROW LEVEL SECURITY',
        'ALTER TABLE reviews ENABLE ROW LEVEL SECURITY',
        '''
        CREATE POLICY "Allow individuals to manage their own cart"
            ON cart_items FOR ALL
            USING (auth.uid() = user_id)
            WITH CHECK (auth.uid() = user_id)
        ''',
        '''
        CREATE POLICY "Allow individuals to read their own orders"
            ON orders FOR SELECT
            USING (auth.uid() = user_id)
        ''',
        '''
        CREATE POLICY "Allow individuals to read their own order items"
            ON order_items FOR SELECT
            USING (
                EXISTS (
                    SELECT 1 FROM orders
                    WHERE orders.id = order_items.order_id
                    AND orders.user_id = auth.uid()
                )
            )
        ''',
        '''
        CREATE POLICY "Allow individuals to read all reviews"
            ON reviews FOR SELECT
            USING (true)
        ''',
        '''
        CREATE POLICY "Allow individuals to write their own reviews"
            ON reviews FOR INSERT
            WITH CHECK (auth.uid() = user_id)
        '''
    ]
}
