"""Schema v1 - Seller profiles and products.

This version includes:
- Seller profiles owned by Supabase auth users
- Products owned by sellers
- updated_at maintenance triggers
- Row level security: anyone reads, owners write
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'sellers',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'business_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'address', 'type': 'TEXT'},
                {'name': 'tax_id', 'type': 'TEXT'},
                {'name': 'contact_email', 'type': 'TEXT'},
                {'name': 'contact_phone', 'type': 'TEXT'},
                {'name': 'logo_url', 'type': 'TEXT'},
                {'name': 'banner_url', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ'}
            ],
            'checks': [
                "status IN ('pending', 'approved')"
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'auth.users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'sellers_user_id_idx', 'columns': ['user_id']},
                {'name': 'sellers_status_idx', 'columns': ['status']}
            ]
        },
        {
            'name': 'products',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'seller_id', 'type': 'UUID', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False, 'default': "''"},
                {'name': 'price', 'type': 'DECIMAL(10,2)', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False, 'default': "'Others'"},
                {'name': 'inventory', 'type': 'INTEGER', 'nullable': False, 'default': '0'},
                {'name': 'image_urls', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ'}
            ],
            'checks': [
                'price >= 0',
                'inventory >= 0'
            ],
            'foreign_keys': [
                {'columns': ['seller_id'], 'references': 'sellers(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'products_seller_id_idx', 'columns': ['seller_id']},
                {'name': 'products_category_idx', 'columns': ['category']},
                {'name': 'products_created_at_idx', 'columns': ['created_at DESC']}
            ]
        }
    ],
    'triggers': [
        {
            'name': 'sellers_set_updated_at',
            'function_name': 'set_updated_at',
            'table': 'sellers',
            'timing': 'BEFORE',
            'event': 'UPDATE',
            'function_body': '''
                BEGIN
                    NEW.updated_at = now();
                    RETURN NEW;
                END;
            '''
        },
        {
            'name': 'products_set_updated_at',
            'function_name': 'set_updated_at',
            'table': 'products',
            'timing': 'BEFORE',
            'event': 'UPDATE',
            'function_body': '''
                BEGIN
                    NEW.updated_at = now();
                    RETURN NEW;
                END;
            '''
        }
    ],
    'migrations': [
        'ALTER TABLE sellers ENABLE ROW LEVEL SECURITY',
        'ALTER TABLE products ENABLE ROW LEVEL SECURITY',
        '''
        CREATE POLICY "Allow individuals to read all sellers"
            ON sellers FOR SELECT
            USING (true)
        ''',
        '''
        CREATE POLICY "Allow individuals to insert their own seller profile"
            ON sellers FOR INSERT
            WITH CHECK (auth.uid() = user_id)
        ''',
        '''
        CREATE POLICY "Allow individuals to update their own seller profile"
            ON sellers FOR UPDATE
            USING (auth.uid() = user_id)
        ''',
        '''
        CREATE POLICY "Allow individuals to read all products"
            ON products FOR SELECT
            USING (true)
        ''',
        '''
        CREATE POLICY "Allow sellers to insert their own products"
            ON products FOR INSERT
            WITH CHECK (
                EXISTS (
                    SELECT 1 FROM sellers
                    WHERE sellers.id = products.seller_id
                    AND sellers.user_id = auth.uid()
                )
            )
        ''',
        '''
        CREATE POLICY "Allow sellers to update their own products"
            ON products FOR UPDATE
            USING (
                EXISTS (
                    SELECT 1 FROM sellers
                    WHERE sellers.id = products.seller_id
                    AND sellers.user_id = auth.uid()
                )
            )
        ''',
        '''
        CREATE POLICY "Allow sellers to delete their own products"
            ON products FOR DELETE
            USING (
                EXISTS (
                    SELECT 1 FROM sellers
                    WHERE sellers.id = products.seller_id
                    AND sellers.user_id = auth.uid()
                )
            )
        '''
    ]
}
