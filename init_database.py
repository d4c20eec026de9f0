#!/usr/bin/env python3
"""
Database initialization script for the PhD scholar admissions portal.
Drops and recreates every table, then seeds the director account.
"""

import argparse
import logging
import os
import sys
import time

import bcrypt
import mysql.connector
from dotenv import load_dotenv
from mysql.connector import Error

from services.scholar_fields import FIELDS

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('database_init.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"

# Form columns searched or indexed stay VARCHAR; every other answer is TEXT so the
# row stays under the InnoDB 65,535 byte limit
LOOKUP_COLUMNS = {
    "application_no": 100,
    "registered_name": 255,
    "email": 255,
    "mobile_number": 50,
    "faculty": 100,
    "program": 255,
    "department": 255,
}

TABLES = ("users", "auth_sessions", "scholar_applications", "scholar_activity",
          "examination_records", "supervisors", "question_papers")


def _column_type(column):
    size = LOOKUP_COLUMNS.get(column)
    return f"VARCHAR({size})" if size else "TEXT"


def scholar_table_ddl():
    data_columns = ",\n".join(
        f"    {field.column} {_column_type(field.column)} DEFAULT NULL"
        for field in FIELDS
    )
    return f"""
    CREATE TABLE IF NOT EXISTS scholar_applications (
        id INT NOT NULL AUTO_INCREMENT,
    {data_columns},
        status VARCHAR(100) DEFAULT 'Pending',
        current_owner VARCHAR(20) DEFAULT 'director',
        faculty_status VARCHAR(100) DEFAULT NULL,
        dept_status VARCHAR(100) DEFAULT NULL,
        dept_review VARCHAR(50) DEFAULT NULL,
        dept_query TEXT DEFAULT NULL,
        query_timestamp DATETIME DEFAULT NULL,
        reject_reason TEXT DEFAULT NULL,
        faculty_forward VARCHAR(50) DEFAULT NULL,
        query_resolved VARCHAR(50) DEFAULT NULL,
        query_resolved_dept VARCHAR(50) DEFAULT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (id),
        KEY idx_scholar_faculty (faculty),
        KEY idx_scholar_faculty_status (faculty_status),
        KEY idx_scholar_application_no (application_no)
    ) {TABLE_OPTIONS}
    """


def schema_statements():
    return [
        f"""
        CREATE TABLE IF NOT EXISTS users (
            user_id INT NOT NULL AUTO_INCREMENT,
            email VARCHAR(100) NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            role ENUM('director', 'admin', 'coordinator', 'department') NOT NULL,
            full_name VARCHAR(150) DEFAULT NULL,
            phone VARCHAR(30) DEFAULT NULL,
            faculty VARCHAR(100) DEFAULT NULL,
            department VARCHAR(150) DEFAULT NULL,
            department_code VARCHAR(20) DEFAULT NULL,
            status ENUM('Active', 'Inactive') DEFAULT 'Active',
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            last_login DATETIME DEFAULT NULL,
            last_logout DATETIME DEFAULT NULL,
            PRIMARY KEY (user_id),
            UNIQUE KEY (email)
        ) {TABLE_OPTIONS}
        """,
        f"""
        CREATE TABLE IF NOT EXISTS auth_sessions (
            session_id VARCHAR(64) NOT NULL,
            user_id INT NOT NULL,
            session_data TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            expires_at DATETIME DEFAULT NULL,
            logout_time DATETIME DEFAULT NULL,
            is_active TINYINT(1) DEFAULT 1,
            PRIMARY KEY (session_id),
            FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
        ) {TABLE_OPTIONS}
        """,
        scholar_table_ddl(),
        f"""
        CREATE TABLE IF NOT EXISTS scholar_activity (
            id INT NOT NULL AUTO_INCREMENT,
            scholar_id INT DEFAULT NULL,
            actor_email VARCHAR(100) DEFAULT NULL,
            actor_role VARCHAR(20) DEFAULT NULL,
            action VARCHAR(50) NOT NULL,
            from_stage VARCHAR(40) DEFAULT NULL,
            to_stage VARCHAR(40) DEFAULT NULL,
            details TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (id),
            KEY idx_activity_scholar (scholar_id)
        ) {TABLE_OPTIONS}
        """,
        f"""
        CREATE TABLE IF NOT EXISTS examination_records (
            id INT NOT NULL AUTO_INCREMENT,
            scholar_id INT DEFAULT NULL,
            application_no VARCHAR(100) DEFAULT NULL,
            registered_name VARCHAR(255) DEFAULT NULL,
            email VARCHAR(255) DEFAULT NULL,
            mobile_number VARCHAR(50) DEFAULT NULL,
            faculty VARCHAR(100) DEFAULT NULL,
            institution VARCHAR(255) DEFAULT NULL,
            program VARCHAR(255) DEFAULT NULL,
            department VARCHAR(255) DEFAULT NULL,
            department_code VARCHAR(20) DEFAULT NULL,
            program_type VARCHAR(50) DEFAULT NULL,
            written_marks DECIMAL(6,2) DEFAULT NULL,
            interview_marks VARCHAR(10) DEFAULT NULL,
            total_marks DECIMAL(6,2) DEFAULT NULL,
            status VARCHAR(20) DEFAULT 'pending',
            faculty_written VARCHAR(50) DEFAULT NULL,
            faculty_interview VARCHAR(50) DEFAULT NULL,
            director_interview VARCHAR(50) DEFAULT NULL,
            result_dir VARCHAR(50) DEFAULT NULL,
            dept_result VARCHAR(50) DEFAULT NULL,
            panel VARCHAR(20) DEFAULT NULL,
            evaluator_count INT DEFAULT NULL,
            examiner1 VARCHAR(255) DEFAULT NULL,
            examiner2 VARCHAR(255) DEFAULT NULL,
            examiner3 VARCHAR(255) DEFAULT NULL,
            examiner1_marks VARCHAR(10) DEFAULT NULL,
            examiner2_marks VARCHAR(10) DEFAULT NULL,
            examiner3_marks VARCHAR(10) DEFAULT NULL,
            supervisor_id INT DEFAULT NULL,
            supervisor_name VARCHAR(150) DEFAULT NULL,
            supervisor_status VARCHAR(20) DEFAULT NULL,
            checklist_verification TEXT DEFAULT NULL,
            checklist_notes TEXT DEFAULT NULL,
            checklist_status VARCHAR(20) DEFAULT NULL,
            eligible_checklist VARCHAR(20) DEFAULT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (id),
            KEY idx_exam_scholar (scholar_id),
            KEY idx_exam_department (department_code)
        ) {TABLE_OPTIONS}
        """,
        f"""
        CREATE TABLE IF NOT EXISTS supervisors (
            id INT NOT NULL AUTO_INCREMENT,
            name VARCHAR(150) NOT NULL,
            email VARCHAR(100) DEFAULT NULL,
            faculty VARCHAR(100) NOT NULL,
            department VARCHAR(150) DEFAULT NULL,
            designation VARCHAR(100) DEFAULT NULL,
            max_full_time_scholars INT DEFAULT 0,
            max_part_time_internal_scholars INT DEFAULT 0,
            max_part_time_external_scholars INT DEFAULT 0,
            max_part_time_industry_scholars INT DEFAULT 0,
            current_full_time_scholars INT DEFAULT 0,
            current_part_time_internal_scholars INT DEFAULT 0,
            current_part_time_external_scholars INT DEFAULT 0,
            current_part_time_industry_scholars INT DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (id)
        ) {TABLE_OPTIONS}
        """,
        f"""
        CREATE TABLE IF NOT EXISTS question_papers (
            id INT NOT NULL AUTO_INCREMENT,
            faculty VARCHAR(100) NOT NULL,
            department VARCHAR(150) NOT NULL,
            department_code VARCHAR(20) DEFAULT NULL,
            title VARCHAR(255) DEFAULT NULL,
            set1 VARCHAR(512) DEFAULT NULL,
            set2 VARCHAR(512) DEFAULT NULL,
            set3 VARCHAR(512) DEFAULT NULL,
            uploaded_by VARCHAR(100) DEFAULT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (id)
        ) {TABLE_OPTIONS}
        """,
    ]


class DatabaseInitializer:
    def __init__(self, env_file='.env'):
        """Initialize with environment"""
        load_dotenv(env_file)

        self.host = os.getenv('MYSQL_HOST', 'localhost')
        self.user = os.getenv('MYSQL_USER', 'root')
        self.password = os.getenv('MYSQL_PASSWORD', '')
        self.database = os.getenv('MYSQL_DB', 'scholar_portal')
        self.port = os.getenv('MYSQL_PORT', '3306')

        self.director_email = os.getenv('DIRECTOR_EMAIL', 'director@example.edu')
        self.director_password = os.getenv('DIRECTOR_PASSWORD')

        logger.info(f"Using database: {self.database}")
        logger.info(f"Using MySQL user: {self.user}")

    def create_connection(self, use_database=True):
        """Create database connection"""
        try:
            config = {
                'host': self.host,
                'user': self.user,
                'password': self.password,
                'port': int(self.port),
                'connection_timeout': 30
            }
            if use_database:
                config['database'] = self.database
            return mysql.connector.connect(**config)
        except Error as e:
            logger.error(f"Connection error: {e}")
            raise

    def hash_password(self, password):
        """Hash a password using bcrypt"""
        salt = bcrypt.gensalt(rounds=12)
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def create_database(self):
        connection = self.create_connection(use_database=False)
        cursor = connection.cursor()
        try:
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS `{self.database}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
            connection.commit()
        finally:
            cursor.close()
            connection.close()

    def drop_all_tables(self):
        """Drop every portal table"""
        connection = self.create_connection()
        cursor = connection.cursor()
        try:
            cursor.execute("SET FOREIGN_KEY_CHECKS = 0")
            for table_name in TABLES:
                cursor.execute(f"DROP TABLE IF EXISTS {table_name}")
                logger.debug(f"Dropped: {table_name}")
            cursor.execute("SET FOREIGN_KEY_CHECKS = 1")
            connection.commit()
            logger.info("All tables dropped")
            return True
        except Error as e:
            logger.error(f"Error dropping tables: {e}")
            return False
        finally:
            cursor.close()
            connection.close()

    def create_tables(self):
        """Create all database tables"""
        connection = self.create_connection()
        cursor = connection.cursor()
        try:
            logger.info("Creating tables...")
            for statement in schema_statements():
                cursor.execute(statement)
            connection.commit()
            logger.info(f"✅ Created {len(TABLES)} tables")
            return True
        except Error as e:
            logger.error(f"Error creating tables: {e}")
            return False
        finally:
            cursor.close()
            connection.close()

    def insert_initial_data(self):
        """Seed the director account"""
        if not self.director_password:
            logger.warning("⚠️ DIRECTOR_PASSWORD not set; skipping director account (use manage.py create_account)")
            return True
        connection = self.create_connection()
        cursor = connection.cursor()
        try:
            cursor.execute(
                "INSERT INTO users (email, password_hash, role, full_name, status) VALUES (%s, %s, %s, %s, %s)",
                (self.director_email.lower(), self.hash_password(self.director_password), 'director',
                 'Director of Research', 'Active'),
            )
            connection.commit()
            logger.info(f"✅ Director account created: {self.director_email}")
            return True
        except Error as e:
            logger.error(f"Error inserting initial data: {e}")
            return False
        finally:
            cursor.close()
            connection.close()

    def verify_setup(self):
        connection = self.create_connection()
        cursor = connection.cursor()
        try:
            cursor.execute("SHOW TABLES")
            existing = {row[0] for row in cursor.fetchall()}
            missing = [table for table in TABLES if table not in existing]
            if missing:
                logger.error(f"Missing tables: {', '.join(missing)}")
                return False
            return True
        finally:
            cursor.close()
            connection.close()

    def initialize(self, force=False):
        """Initialize database"""
        start_time = time.time()

        print("\n" + "=" * 60)
        print("SCHOLAR PORTAL DATABASE INITIALIZATION")
        print("=" * 60)
        print(f"Database: {self.database}")
        print(f"MySQL User: {self.user}")
        print("=" * 60)

        if not force:
            print("\n⚠️  WARNING: This will DROP ALL EXISTING TABLES!")
            confirm = input("Type 'YES' to continue: ").strip().upper()
            if confirm != 'YES':
                print("Operation cancelled")
                return False

        try:
            logger.info("Starting database initialization...")
            self.create_database()

            logger.info("[1/3] Dropping existing tables...")
            if not self.drop_all_tables():
                return False

            logger.info("[2/3] Creating tables...")
            if not self.create_tables():
                return False

            logger.info("[3/3] Inserting initial data...")
            if not self.insert_initial_data():
                return False

            if not self.verify_setup():
                logger.error("Verification failed")
                return False

            print("\n" + "=" * 60)
            print("✅ DATABASE INITIALIZATION COMPLETE")
            print(f"Time: {time.time() - start_time:.2f} seconds")
            print("=" * 60)
            return True

        except Exception as e:
            logger.error(f"Initialization failed: {e}", exc_info=True)
            return False


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Initialize scholar portal database')
    parser.add_argument('--force', action='store_true', help='Skip confirmation')
    parser.add_argument('--env', default='.env', help='Environment file')
    args = parser.parse_args()

    try:
        initializer = DatabaseInitializer(env_file=args.env)
        sys.exit(0 if initializer.initialize(force=args.force) else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
