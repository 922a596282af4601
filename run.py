#!/usr/bin/env python3
"""Application entry point"""
import os
import sys

def init_database():
    """Initialize the database"""
    from agrocredito import create_app, db
    from agrocredito.utils.access_control import seed_access_control
    app = create_app(os.getenv('FLASK_ENV') or 'development')
    with app.app_context():
        db.create_all()
        seed_access_control()
        print("Database initialized!")

def seed():
    """Create the permission catalogue and default profiles"""
    from agrocredito import create_app
    from agrocredito.utils.access_control import seed_access_control
    app = create_app(os.getenv('FLASK_ENV') or 'development')
    with app.app_context():
        seed_access_control()
        print("Permissions and profiles seeded!")

def create_admin_user():
    """Create an admin user"""
    from agrocredito import create_app, db
    from agrocredito.models import User
    from agrocredito.utils.access_control import default_profile_for, seed_access_control

    app = create_app(os.getenv('FLASK_ENV') or 'development')

    with app.app_context():
        # Create tables if they don't exist
        db.create_all()
        seed_access_control()

        phone = os.environ.get('ADMIN_PHONE') or '+244900000000'
        password = os.environ.get('ADMIN_PASSWORD') or 'admin123'

        # Check if admin already exists
        existing_admin = User.query.filter_by(phone=phone).first()
        if existing_admin:
            print("Admin user already exists!")
            return

        admin = User(
            full_name='System Administrator',
            bi='000000000LA000',
            phone=phone,
            email=os.environ.get('ADMIN_EMAIL') or 'admin@agrocredito.ao',
            user_type='admin',
            is_active=True
        )
        admin.set_password(password)
        admin.profile = default_profile_for('admin')
        db.session.add(admin)

        try:
            db.session.commit()
            print("Admin user created successfully!")
            print("Phone: {}".format(phone))
            print("Please change the password after first login!")
        except Exception as e:
            db.session.rollback()
            print("Error: {}".format(e))
            sys.exit(1)

def reconcile_accounts():
    """Open missing accounts for approved applications"""
    from agrocredito import create_app
    from agrocredito.applications.workflow import reconcile_approved_accounts

    app = create_app(os.getenv('FLASK_ENV') or 'development')
    with app.app_context():
        opened = reconcile_approved_accounts()
        print("Accounts opened: {}".format(len(opened)))

COMMANDS = {
    'init-db': init_database,
    'seed': seed,
    'create-admin': create_admin_user,
    'reconcile-accounts': reconcile_accounts,
}

if __name__ == '__main__':
    # Handle command-line arguments
    if len(sys.argv) > 1:
        command = COMMANDS.get(sys.argv[1])
        if command is None:
            print("Unknown command: {}".format(sys.argv[1]))
            print("Available commands: {}".format(', '.join(COMMANDS)))
            sys.exit(1)
        command()
    else:
        # Run the Flask development server
        from agrocredito import create_app
        app = create_app(os.getenv('FLASK_ENV') or 'development')
        app.run(host='0.0.0.0', port=5000, debug=app.config.get('DEBUG', False))
